"""
Bearer token handling.

Tokens are issued by the identity service that fronts this API and signed with
the shared SECRET_KEY. This module only verifies them; `create_access_token`
exists for local tooling and the test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt

from ..config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign `claims` (must include `sub`, the user id) as an access token."""
    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + lifetime
    payload["type"] = ACCESS_TOKEN_TYPE
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_access_token(token: str) -> Optional[dict]:
    """
    Claims of a valid, unexpired access token carrying a subject; otherwise None.
    Expiry is checked by python-jose.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except JWTError:
        logger.warning("Rejected malformed or forged access token")
        return None

    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        return None
    return payload
