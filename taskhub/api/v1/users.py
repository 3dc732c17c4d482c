"""
User profile routes.
GET/PUT/DELETE /users/me, PUT /users/me/password, GET /users/search, admin CRUD on /users/
"""
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Query, status

from taskhub.core.dependencies import AdminUser, CurrentUser, DBSession, Pagination
from taskhub.core.exceptions import BadRequestException, ConflictException, NotFoundException
from taskhub.core.security import hash_password, verify_password
from taskhub.crud.user import crud_user
from taskhub.schemas.pagination import PaginatedResponse, paginate
from taskhub.schemas.user import (
    PasswordChange,
    UserAdminUpdate,
    UserRead,
    UserReadPublic,
    UserUpdate,
)
from taskhub.services.activity_service import activity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserRead, summary="Get current user profile")
async def get_me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@router.put("/me", response_model=UserRead, summary="Update current user profile")
async def update_me(
    user_in: UserUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> UserRead:
    if user_in.username and user_in.username != current_user.username:
        if await crud_user.exists(db, username=user_in.username):
            raise ConflictException("Username already taken")

    updates = user_in.model_dump(exclude_unset=True)
    if updates.get("username") is None:
        updates.pop("username", None)
    updated = await crud_user.update(db, db_obj=current_user, obj_in=updates)
    await activity_service.log(
        db,
        user_id=current_user.id,
        action="profile_updated",
        entity_type="user",
        entity_id=current_user.id,
        meta={"fields": sorted(updates)},
    )
    return UserRead.model_validate(updated)


@router.put(
    "/me/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change current user password",
)
async def change_password(
    body: PasswordChange,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    if not verify_password(body.current_password, current_user.hashed_password):
        raise BadRequestException("Current password is incorrect")
    if body.current_password == body.new_password:
        raise BadRequestException("New password must differ from current password")

    # Existing refresh tokens stop working after a password change
    await crud_user.update(
        db,
        db_obj=current_user,
        obj_in={
            "hashed_password": hash_password(body.new_password),
            "refresh_token_hash": None,
        },
    )
    await activity_service.log(
        db,
        user_id=current_user.id,
        action="password_changed",
        entity_type="user",
        entity_id=current_user.id,
    )


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete the current user's account",
)
async def delete_me(current_user: CurrentUser, db: DBSession) -> None:
    user_id = current_user.id
    if not await crud_user.delete_account(db, user_id=user_id):
        raise NotFoundException("User", str(user_id))
    logger.info("User account deleted: user_id=%s", user_id)


@router.get(
    "/search",
    response_model=list[UserReadPublic],
    summary="Find active users by username or email prefix",
)
async def search_users(
    _current_user: CurrentUser,
    db: DBSession,
    q: str = Query(min_length=1, max_length=100),
    limit: int = Query(default=10, ge=1, le=50),
) -> list[UserReadPublic]:
    users = await crud_user.search(db, term=q, limit=limit)
    return [UserReadPublic.model_validate(u) for u in users]


@router.get(
    "/",
    response_model=PaginatedResponse[UserRead],
    summary="List all users (admin only)",
)
async def list_users(
    _admin: AdminUser,
    db: DBSession,
    pagination: Pagination,
    include_inactive: bool = Query(default=False),
) -> PaginatedResponse[UserRead]:
    users, total = await crud_user.list_users(
        db,
        skip=pagination.skip,
        limit=pagination.size,
        include_inactive=include_inactive,
    )
    return paginate(UserRead, users, total, page=pagination.page, size=pagination.size)


@router.get(
    "/{user_id}",
    response_model=UserRead,
    summary="Get user by ID (admin only)",
)
async def get_user(
    user_id: uuid.UUID,
    _admin: AdminUser,
    db: DBSession,
) -> UserRead:
    user = await crud_user.get(db, user_id)
    if user is None:
        raise NotFoundException("User", str(user_id))
    return UserRead.model_validate(user)


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    summary="Update user role/status (admin only)",
)
async def admin_update_user(
    user_id: uuid.UUID,
    user_in: UserAdminUpdate,
    admin: AdminUser,
    db: DBSession,
) -> UserRead:
    user = await crud_user.get(db, user_id)
    if user is None:
        raise NotFoundException("User", str(user_id))
    updates = {k: v for k, v in user_in.model_dump(exclude_unset=True).items() if v is not None}
    updated = await crud_user.update(db, db_obj=user, obj_in=updates)
    await activity_service.log(
        db,
        user_id=admin.id,
        action="user_admin_updated",
        entity_type="user",
        entity_id=user_id,
        meta=updates,
    )
    return UserRead.model_validate(updated)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate user (admin only)",
)
async def deactivate_user(
    user_id: uuid.UUID,
    admin: AdminUser,
    db: DBSession,
) -> None:
    user = await crud_user.get(db, user_id)
    if user is None:
        raise NotFoundException("User", str(user_id))
    if user.id == admin.id:
        raise BadRequestException("You cannot deactivate your own account")
    await crud_user.deactivate(db, user=user)
    await activity_service.log(
        db,
        user_id=admin.id,
        action="user_deactivated",
        entity_type="user",
        entity_id=user_id,
    )
