"""Authentication for the stage trigger surface.

The cron caller presents a static bearer token that must equal
REELPIPE_CRON_SECRET. Comparison is constant time. With no secret
configured every protected request is rejected.
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reelpipe.config import get_settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def get_cron_secret() -> Optional[str]:
    """FastAPI dependency returning the configured secret (overridable in tests)."""
    return get_settings().reelpipe_cron_secret


def token_matches(token: Optional[str], secret: Optional[str]) -> bool:
    """Constant-time comparison; an unset secret matches nothing."""
    if not token or not secret:
        return False
    return secrets.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


async def require_cron_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    secret: Optional[str] = Depends(get_cron_secret),
) -> None:
    """FastAPI dependency: reject the request with 401 unless the bearer token matches."""
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not token_matches(credentials.credentials, secret):
        logger.warning("Rejected trigger request with invalid bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
