"""
FastAPI dependency injection functions.
Provides get_db, get_current_user, require_admin and pagination params.
"""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import ForbiddenException, InvalidTokenException, UnauthorizedException
from taskhub.core.security import decode_access_token, token_subject
from taskhub.crud.user import crud_user
from taskhub.db.session import get_db
from taskhub.models.user import User

__all__ = [
    "get_db",
    "get_current_user",
    "require_admin",
    "DBSession",
    "CurrentUser",
    "AdminUser",
    "Pagination",
]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> User:
    """
    Extract and validate the JWT access token from the Authorization header.
    Returns the authenticated, active User.
    """
    if credentials is None:
        raise UnauthorizedException("Missing authentication token")

    try:
        user_id = token_subject(decode_access_token(credentials.credentials))
    except JWTError:
        raise InvalidTokenException("Invalid or expired access token")

    user = await crud_user.get(db, user_id)
    if user is None:
        raise UnauthorizedException("User not found")
    if not user.is_active:
        raise UnauthorizedException("User account is deactivated")

    return user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if current_user.role != "admin":
        raise ForbiddenException("Admin privileges required")
    return current_user


class PageParams(BaseModel):
    page: int
    size: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size


def pagination_params(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
) -> PageParams:
    return PageParams(page=page, size=size)


# Convenience type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
Pagination = Annotated[PageParams, Depends(pagination_params)]
