"""Admin authorization for the /api/admin routes."""

from __future__ import annotations

import hmac
from typing import Optional

import structlog
from fastapi import HTTPException, Query, Request

from src.common.config import Settings

logger = structlog.get_logger()


def verify_admin_token(token: Optional[str], expected: Optional[str]) -> bool:
    if not expected or not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


async def require_admin(request: Request, token: Optional[str] = Query(default=None)) -> None:
    """Unknown, missing or unconfigured tokens all look like a missing route."""
    settings: Settings = request.app.state.settings
    if not settings.admin_secret_token:
        logger.warning("admin_token_not_configured")
        raise HTTPException(status_code=404, detail="Not found")
    if not verify_admin_token(token, settings.admin_secret_token):
        raise HTTPException(status_code=404, detail="Not found")


def is_admin_email(email: str, settings: Settings) -> bool:
    return email.strip().lower() in settings.admin_emails
