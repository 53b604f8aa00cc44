import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatguard.core.config import get_settings
from chatguard.core.exceptions import register_exception_handlers
from chatguard.core.logging_config import setup_logging
from chatguard.core.middleware import CorrelationIDMiddleware
from chatguard.core.redis import close_redis
from chatguard.routers import health, moderation
from chatguard.services.moderation_service import create_moderation_service

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    logger.info("Starting %s...", settings.app_name)
    app.state.moderation_service = create_moderation_service(settings)
    yield
    logger.info("Shutting down %s...", settings.app_name)
    close_redis()


app = FastAPI(
    title=settings.app_name,
    description="Content moderation and user reputation engine",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIDMiddleware)

# Global exception handlers (domain exceptions -> HTTP responses)
register_exception_handlers(app)

app.include_router(health.router, tags=["Health"])
app.include_router(
    moderation.router, prefix=f"{settings.api_prefix}/moderation", tags=["Moderation"]
)
