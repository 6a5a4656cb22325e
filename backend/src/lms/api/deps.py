"""FastAPI dependencies for database sessions and authentication."""
from typing import Optional
from uuid import UUID

import jwt
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lms.auth.jwt import jwt_auth
from lms.database import get_db

__all__ = ["get_db", "get_current_user", "current_user_id"]

logger = structlog.get_logger(__name__)

# auto_error=False so a missing header yields 401 rather than 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, str]:
    """
    Get current authenticated user from JWT token.

    Returns:
        dict: User information from decoded JWT (sub, email, role)

    Raises:
        HTTPException: If token is invalid, expired, or missing
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials

    try:
        payload = jwt_auth.verify_access_token(token)
        logger.debug("user_authenticated", user_id=payload.get("sub"), role=payload.get("role"))
        return payload

    except jwt.ExpiredSignatureError:
        logger.warning("token_expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning("invalid_token", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def current_user_id(current_user: dict) -> UUID:
    """Return the ``sub`` claim as a UUID, 401 if it is not one."""
    try:
        return UUID(str(current_user.get("sub")))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token subject is not a user ID",
        )
