"""Static bearer token guard for admin and internal routes."""

import hmac
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config import Settings, get_settings
from app.core.exceptions import UnauthorizedException

security = HTTPBearer(auto_error=False)


def require_admin_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Check the bearer token when ADMIN_API_TOKEN is configured; open otherwise."""
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        return

    token = credentials.credentials if credentials else ""
    if not hmac.compare_digest(token.encode(), expected.encode()):
        raise UnauthorizedException("Invalid or missing admin token")
