# app/auth/dependencies.py
from fastapi import Header
from typing import Optional
from app.config import settings
from app.errors import UnauthorizedError
import hmac
import logging

logger = logging.getLogger(__name__)

async def verify_cron_secret(
    authorization: Optional[str] = Header(None)
) -> None:
    """Reject scheduler calls that do not carry `Bearer <CRON_SECRET>`"""
    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Unauthorized cron request attempt")
        raise UnauthorizedError("Missing or invalid cron secret")
