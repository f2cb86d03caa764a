"""
Bearer token verification for the analytics API.

Tokens are issued elsewhere; this module only signs test/service tokens and
resolves the user behind an incoming one.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from triforce.config import settings
from triforce.database import get_db
from triforce.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class AuthenticationError(Exception):
    """Raised when a bearer token cannot be trusted."""
    pass


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign an access token whose subject is ``user_id``.

    Args:
        user_id: User the token is for
        expires_delta: Lifetime; defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    claims = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "type": "access",
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> int:
    """
    Check signature, expiry and claims of an access token.

    Returns:
        The user ID in the ``sub`` claim

    Raises:
        AuthenticationError: If the token is invalid, expired, not an access
            token, or has no integer subject
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise AuthenticationError(f"Invalid token: {e}")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Invalid token: missing subject")

    try:
        return int(subject)
    except ValueError:
        raise AuthenticationError("Invalid token: malformed subject")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    FastAPI dependency resolving the authenticated user.

    Raises:
        HTTPException: 401 without a valid bearer token, 404 if the user in
            the token no longer exists
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = verify_token(credentials.credentials)
    except AuthenticationError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.warning(f"User {user_id} not found in database")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return user
