"""
Backoffice Admin - Security Utilities

Password hashing, JWT token management, and redirect hygiene.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlsplit

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.utils.error_handling import TokenExpiredException, TokenInvalidException


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storing."""
    return pwd_context.hash(password)


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary containing token payload (``sub`` is the user id)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def decode_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Raises:
        TokenExpiredException: the token has expired
        TokenInvalidException: bad signature, malformed, or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except ExpiredSignatureError as e:
        raise TokenExpiredException() from e
    except JWTError as e:
        raise TokenInvalidException() from e

    if payload.get("type") != "access":
        raise TokenInvalidException("Not an access token")
    return payload


def safe_return_url(candidate: Optional[str], host: Optional[str] = None) -> Optional[str]:
    """
    Reduce a redirect candidate to a same-site path, or None.

    Absolute URLs are accepted only when they point at ``host`` (the Host
    header of the current request); protocol-relative and foreign URLs are
    rejected to avoid open redirects.
    """
    if not candidate:
        return None

    candidate = candidate.strip()
    if candidate.startswith("//") or candidate.startswith("\\"):
        return None

    parts = urlsplit(candidate)
    if parts.scheme or parts.netloc:
        if parts.scheme not in ("http", "https") or not host or parts.netloc != host:
            return None

    path = parts.path or "/"
    if not path.startswith("/") or path.startswith("//"):
        return None

    return f"{path}?{parts.query}" if parts.query else path
