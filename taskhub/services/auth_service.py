"""
Authentication service.
Handles registration, login, refresh-token rotation, and logout.
Business logic lives here; routes only call these methods.
"""
from __future__ import annotations

import logging

from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.core.exceptions import (
    ConflictException,
    InvalidTokenException,
    UnauthorizedException,
)
from taskhub.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    hash_token,
    token_subject,
    verify_password,
)
from taskhub.crud.user import crud_user
from taskhub.models.user import User
from taskhub.schemas.user import Token, UserCreate
from taskhub.services.activity_service import activity_service

logger = logging.getLogger(__name__)


class AuthService:

    async def register_user(
        self, db: AsyncSession, *, user_in: UserCreate, ip_address: str | None = None
    ) -> User:
        """
        Register a new user.
        Validates email/username uniqueness, hashes password, creates user,
        and logs the registration activity.
        """
        if await crud_user.exists(db, email=user_in.email):
            raise ConflictException("A user with this email already exists")

        if await crud_user.exists(db, username=user_in.username):
            raise ConflictException("A user with this username already exists")

        user = await crud_user.create_user(
            db,
            email=user_in.email,
            username=user_in.username,
            hashed_password=hash_password(user_in.password),
            full_name=user_in.full_name,
        )

        await activity_service.log(
            db,
            user_id=user.id,
            action="user_registered",
            entity_type="user",
            entity_id=user.id,
            meta={"email": user.email, "username": user.username},
            ip_address=ip_address,
        )
        logger.info("Registered user %s", user.id)
        return user

    async def authenticate_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        password: str,
        ip_address: str | None = None,
    ) -> Token:
        """
        Verify credentials and issue an access + refresh token pair.
        Stores the refresh token hash in the DB for rotation/revocation.
        """
        user = await crud_user.get_active_by_email(db, email)
        if user is None or not verify_password(password, user.hashed_password):
            logger.info("Failed login for %s", email)
            raise UnauthorizedException("Invalid email or password")

        token = await self._issue_tokens(db, user=user)
        await activity_service.log(
            db,
            user_id=user.id,
            action="user_login",
            entity_type="user",
            entity_id=user.id,
            ip_address=ip_address,
        )
        return token

    async def refresh_access_token(
        self, db: AsyncSession, *, refresh_token: str
    ) -> Token:
        """
        Validate the refresh token, issue a new access token,
        and rotate the refresh token. A token that is not the latest one
        issued to the user is rejected as revoked.
        """
        try:
            user_id = token_subject(decode_refresh_token(refresh_token))
        except JWTError:
            raise InvalidTokenException("Invalid or expired refresh token")

        user = await crud_user.get(db, user_id)
        if user is None or not user.is_active:
            raise UnauthorizedException("User not found or inactive")

        if user.refresh_token_hash != hash_token(refresh_token):
            raise InvalidTokenException("Refresh token has been revoked")

        return await self._issue_tokens(db, user=user)

    async def logout(self, db: AsyncSession, *, user: User) -> None:
        """Invalidate the stored refresh token hash."""
        await crud_user.set_refresh_token_hash(db, user=user, token_hash=None)
        await activity_service.log(
            db,
            user_id=user.id,
            action="user_logout",
            entity_type="user",
            entity_id=user.id,
        )

    async def _issue_tokens(self, db: AsyncSession, *, user: User) -> Token:
        access_token = create_access_token(str(user.id), user.role)
        refresh_token = create_refresh_token(str(user.id))
        await crud_user.set_refresh_token_hash(
            db, user=user, token_hash=hash_token(refresh_token)
        )
        return Token(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_seconds,
        )


auth_service = AuthService()
