"""
Team CRUD operations.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskhub.crud.base import CRUDBase
from taskhub.models.project import Project
from taskhub.models.task import Task
from taskhub.models.team import Team, TeamMember
from taskhub.schemas.team import TeamCreate, TeamUpdate


class CRUDTeam(CRUDBase[Team, TeamCreate, TeamUpdate]):

    async def create_team(
        self,
        db: AsyncSession,
        *,
        obj_in: TeamCreate,
        owner_id: uuid.UUID,
    ) -> Team:
        team = Team(
            name=obj_in.name,
            description=obj_in.description,
            owner_id=owner_id,
        )
        db.add(team)
        await db.flush()
        await db.refresh(team)
        return team

    async def get_with_members(
        self, db: AsyncSession, team_id: uuid.UUID
    ) -> Team | None:
        result = await db.execute(
            select(Team)
            .options(
                selectinload(Team.owner),
                selectinload(Team.members).selectinload(TeamMember.user),
            )
            .where(Team.id == team_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[Team], int]:
        """Return (teams, total) where the user is owner or member."""
        member_team_ids = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        query = (
            select(Team)
            .where((Team.owner_id == user_id) | Team.id.in_(member_team_ids))
            .options(selectinload(Team.owner))
            .order_by(Team.created_at.desc())
        )
        return await self.fetch_page(db, query, skip=skip, limit=limit)

    async def get_member(
        self, db: AsyncSession, *, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamMember | None:
        return await db.get(TeamMember, (team_id, user_id))

    async def add_member(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str = "member",
    ) -> TeamMember:
        member = TeamMember(team_id=team_id, user_id=user_id, role=role)
        db.add(member)
        await db.flush()
        await db.refresh(member, attribute_names=["user", "joined_at"])
        return member

    async def remove_member(
        self, db: AsyncSession, *, member: TeamMember
    ) -> None:
        await db.delete(member)
        await db.flush()

    async def update_member_role(
        self,
        db: AsyncSession,
        *,
        member: TeamMember,
        role: str,
    ) -> TeamMember:
        member.role = role
        db.add(member)
        await db.flush()
        await db.refresh(member, attribute_names=["user"])
        return member

    async def get_user_team_ids(
        self, db: AsyncSession, *, user_id: uuid.UUID
    ) -> list[uuid.UUID]:
        """Return all team IDs the user belongs to (as owner or member)."""
        member_team_ids = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        result = await db.execute(
            select(Team.id).where(
                (Team.owner_id == user_id) | Team.id.in_(member_team_ids)
            )
        )
        return [row[0] for row in result.all()]

    async def detach_team(self, db: AsyncSession, *, team_id: uuid.UUID) -> None:
        """Clear team references on projects and tasks before the team is deleted."""
        await db.execute(update(Project).where(Project.team_id == team_id).values(team_id=None))
        await db.execute(update(Task).where(Task.team_id == team_id).values(team_id=None))

    async def count_active_teams(self, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count()).select_from(Team).where(Team.is_active.is_(True))
        )
        return result.scalar_one()


crud_team = CRUDTeam(Team)
