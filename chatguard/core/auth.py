"""
Admin key check for administrative moderation routes.

Rule catalog edits, config updates and appeal overrides are operator-only.
Message checks and report intake are called by trusted internal services and
are not gated here.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from chatguard.core.config import get_settings

logger = logging.getLogger(__name__)


async def require_admin(x_admin_key: Optional[str] = Header(None)) -> None:
    """
    Require a matching X-Admin-Key header.

    When no ADMIN_API_KEY is configured (development only, enforced by
    Settings), admin routes are open.

    Usage:
        @router.post("/rules", dependencies=[Depends(require_admin)])
    """
    expected = get_settings().admin_api_key
    if not expected:
        return

    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        logger.warning("Rejected admin request with missing or invalid X-Admin-Key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin key required",
        )
