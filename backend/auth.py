import logging
from typing import Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt

import config

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when a bearer token is missing or cannot be verified."""


def authenticate(authorization: Optional[str]) -> str:
    """
    Resolve the caller's user id from an Authorization header.
    The token must be a JWT signed by the auth provider; its `sub` claim is the owner id.
    """
    if not config.AUTH_JWT_SECRET:
        raise RuntimeError("AUTH_JWT_SECRET is not configured")

    token = (authorization or "").replace("Bearer ", "", 1).strip()
    if not token:
        raise AuthError("Missing bearer token")

    try:
        claims = jwt.decode(
            token,
            config.AUTH_JWT_SECRET,
            algorithms=[config.AUTH_JWT_ALGORITHM],
            audience=config.AUTH_JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise AuthError(str(e)) from e

    user_id = claims.get("sub")
    if not user_id:
        raise AuthError("Token has no subject")
    return user_id


def get_current_user(authorization: Optional[str] = Header(default=None)) -> str:
    """FastAPI dependency for endpoints that act on the caller's own tasks."""
    try:
        return authenticate(authorization)
    except AuthError:
        raise HTTPException(status_code=401, detail="Unauthorized")
