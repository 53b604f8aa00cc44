from fastapi import APIRouter

from chatguard.core.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "chatguard"}


@router.get("/health/redis")
async def redis_health_check():
    """Redis health check endpoint (only meaningful with the Redis ledger)."""
    if get_settings().ledger_backend != "redis":
        return {"status": "not_configured", "service": "redis"}

    from chatguard.core.redis import get_redis

    try:
        get_redis().ping()
        return {"status": "healthy", "service": "redis"}
    except Exception as e:
        return {"status": "unhealthy", "service": "redis", "error": str(e)}
