"""
User CRUD operations.
Extends CRUDBase with lookups by email/username, search and presence updates.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.crud.base import CRUDBase
from taskhub.db.base import utcnow
from taskhub.models.user import User
from taskhub.schemas.user import UserCreate, UserUpdate


class CRUDUser(CRUDBase[User, UserCreate, UserUpdate]):

    async def get_active_by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(
            select(User).where(User.email == email.lower(), User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_active_by_usernames(
        self, db: AsyncSession, usernames: Iterable[str]
    ) -> list[User]:
        names = {name.lower() for name in usernames}
        if not names:
            return []
        result = await db.execute(
            select(User).where(
                func.lower(User.username).in_(names),
                User.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def create_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        username: str,
        hashed_password: str,
        full_name: str | None = None,
        role: str = "user",
    ) -> User:
        user = User(
            email=email.lower(),
            username=username,
            hashed_password=hashed_password,
            full_name=full_name,
            role=role,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    async def set_refresh_token_hash(
        self, db: AsyncSession, *, user: User, token_hash: str | None
    ) -> User:
        user.refresh_token_hash = token_hash
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    async def deactivate(self, db: AsyncSession, *, user: User) -> User:
        user.is_active = False
        user.refresh_token_hash = None
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    async def delete_account(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        """
        Delete a user row with a single statement.

        Owned teams, projects, tasks, comments and notifications go with it
        through the ON DELETE rules of their foreign keys; assignments are
        set to NULL.
        """
        result = await db.execute(delete(User).where(User.id == user_id))
        return result.rowcount  # type: ignore[return-value]

    async def touch_last_seen(self, db: AsyncSession, *, user_id: uuid.UUID) -> None:
        await db.execute(
            update(User).where(User.id == user_id).values(last_seen_at=utcnow())
        )

    async def search(
        self,
        db: AsyncSession,
        *,
        term: str,
        limit: int = 10,
    ) -> list[User]:
        """Active users whose username or email starts with ``term``."""
        prefix = f"{term.lower()}%"
        result = await db.execute(
            select(User)
            .where(
                User.is_active.is_(True),
                or_(func.lower(User.username).like(prefix), User.email.like(prefix)),
            )
            .order_by(User.username)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_users(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        include_inactive: bool = False,
    ) -> tuple[list[User], int]:
        query = select(User)
        if not include_inactive:
            query = query.where(User.is_active.is_(True))
        return await self.fetch_page(
            db, query.order_by(User.created_at.desc()), skip=skip, limit=limit
        )

    async def count_active(self, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count()).select_from(User).where(User.is_active.is_(True))
        )
        return result.scalar_one()


crud_user = CRUDUser(User)
