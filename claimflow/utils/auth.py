"""
Authentication Utilities
JWT access tokens
Source: https://fastapi.tiangolo.com/tutorial/security/oauth2-jwt/
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from claimflow.api.config import settings
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


def create_access_token(subject: str, expires_delta: timedelta | None = None, **claims: Any) -> str:
    """
    Create a signed JWT access token.

    Args:
        subject: User id placed in the ``sub`` claim
        expires_delta: Optional custom expiration time
        **claims: Extra claims merged into the payload

    Returns:
        Encoded JWT token
    """
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: dict[str, Any] = {**claims, "sub": subject, "exp": expire, "type": "access"}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and verify a JWT token.

    Returns:
        Token payload, or None if the token is invalid or expired
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None
