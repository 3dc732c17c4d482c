"""
Team management service.
Handles team creation, member invitation, removal, role updates and leaving.
"""
from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from taskhub.crud.team import crud_team
from taskhub.crud.user import crud_user
from taskhub.models.team import Team, TeamMember
from taskhub.models.user import User
from taskhub.schemas.team import TeamCreate, TeamMemberAdd, TeamUpdate
from taskhub.services.activity_service import activity_service, detect_changes
from taskhub.services.notification_service import notification_service


class TeamService:

    async def create_team(
        self,
        db: AsyncSession,
        *,
        team_in: TeamCreate,
        current_user: User,
    ) -> Team:
        team = await crud_team.create_team(
            db, obj_in=team_in, owner_id=current_user.id
        )
        # Owner is always a manager member
        await crud_team.add_member(
            db, team_id=team.id, user_id=current_user.id, role="manager"
        )
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="team_created",
            entity_type="team",
            entity_id=team.id,
            team_id=team.id,
            meta={"name": team.name},
        )
        return team

    async def list_teams(
        self, db: AsyncSession, *, current_user: User, skip: int, limit: int
    ) -> tuple[list[Team], int]:
        return await crud_team.list_by_user(
            db, user_id=current_user.id, skip=skip, limit=limit
        )

    async def get_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        current_user: User,
    ) -> Team:
        team = await crud_team.get_with_members(db, team_id)
        if team is None:
            raise NotFoundException("Team", str(team_id))
        await self._assert_member_or_admin(db, team=team, user=current_user)
        return team

    async def update_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        team_in: TeamUpdate,
        current_user: User,
    ) -> Team:
        team = await self._get_or_404(db, team_id)
        self._assert_owner_or_admin(team=team, user=current_user)

        updates = team_in.model_dump(exclude_unset=True)
        for field in ("name", "is_active"):
            if field in updates and updates[field] is None:
                del updates[field]
        changes = detect_changes(team, updates)
        updated = await crud_team.update(db, db_obj=team, obj_in=updates)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="team_updated",
            entity_type="team",
            entity_id=team.id,
            team_id=team.id,
            meta={"changes": changes},
        )
        return updated

    async def delete_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        current_user: User,
    ) -> None:
        """Delete a team. Its projects and tasks stay, without a team."""
        team = await self._get_or_404(db, team_id)
        self._assert_owner_or_admin(team=team, user=current_user)

        await crud_team.detach_team(db, team_id=team_id)
        await crud_team.remove(db, db_obj=team)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="team_deleted",
            entity_type="team",
            entity_id=team_id,
            meta={"name": team.name},
        )

    async def add_member(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        member_in: TeamMemberAdd,
        current_user: User,
    ) -> TeamMember:
        team = await self._get_or_404(db, team_id)
        await self._assert_manager_or_admin(db, team=team, user=current_user)

        target_user = await crud_user.get(db, member_in.user_id)
        if target_user is None or not target_user.is_active:
            raise NotFoundException("User", str(member_in.user_id))

        existing = await crud_team.get_member(
            db, team_id=team_id, user_id=member_in.user_id
        )
        if existing is not None:
            raise ConflictException("User is already a member of this team")

        member = await crud_team.add_member(
            db,
            team_id=team_id,
            user_id=member_in.user_id,
            role=member_in.role,
        )

        if member_in.user_id != current_user.id:
            await notification_service.notify_team_invite(
                db,
                user_id=member_in.user_id,
                team_id=team_id,
                team_name=team.name,
                inviter=current_user,
            )

        await activity_service.log(
            db,
            user_id=current_user.id,
            action="team_member_added",
            entity_type="team",
            entity_id=team_id,
            team_id=team_id,
            meta={"user_id": member_in.user_id, "role": member_in.role},
        )
        return member

    async def remove_member(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User,
    ) -> None:
        team = await self._get_or_404(db, team_id)
        await self._assert_manager_or_admin(db, team=team, user=current_user)

        if team.owner_id == user_id:
            raise ForbiddenException("Cannot remove the team owner")

        member = await crud_team.get_member(db, team_id=team_id, user_id=user_id)
        if member is None:
            raise NotFoundException("TeamMember")

        await crud_team.remove_member(db, member=member)
        await notification_service.notify_team_removed(
            db,
            user_id=user_id,
            team_id=team_id,
            team_name=team.name,
        )
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="team_member_removed",
            entity_type="team",
            entity_id=team_id,
            team_id=team_id,
            meta={"user_id": user_id},
        )

    async def update_member_role(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str,
        current_user: User,
    ) -> TeamMember:
        team = await self._get_or_404(db, team_id)
        self._assert_owner_or_admin(team=team, user=current_user)

        if team.owner_id == user_id:
            raise BadRequestException("The team owner's role cannot be changed")

        member = await crud_team.get_member(db, team_id=team_id, user_id=user_id)
        if member is None:
            raise NotFoundException("TeamMember")

        old_role = member.role
        member = await crud_team.update_member_role(db, member=member, role=role)
        if old_role != role:
            await notification_service.notify_team_role_changed(
                db,
                user_id=user_id,
                team_id=team_id,
                team_name=team.name,
                role=role,
            )
            await activity_service.log(
                db,
                user_id=current_user.id,
                action="team_member_role_changed",
                entity_type="team",
                entity_id=team_id,
                team_id=team_id,
                meta={"user_id": user_id, "old": old_role, "new": role},
            )
        return member

    async def leave_team(
        self, db: AsyncSession, *, team_id: uuid.UUID, current_user: User
    ) -> None:
        team = await self._get_or_404(db, team_id)
        if team.owner_id == current_user.id:
            raise BadRequestException("The team owner cannot leave the team")

        member = await crud_team.get_member(db, team_id=team_id, user_id=current_user.id)
        if member is None:
            raise NotFoundException("TeamMember")

        await crud_team.remove_member(db, member=member)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="team_left",
            entity_type="team",
            entity_id=team_id,
            team_id=team_id,
        )

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _get_or_404(self, db: AsyncSession, team_id: uuid.UUID) -> Team:
        team = await crud_team.get(db, team_id)
        if team is None:
            raise NotFoundException("Team", str(team_id))
        return team

    async def _assert_member_or_admin(
        self, db: AsyncSession, *, team: Team, user: User
    ) -> None:
        if user.role == "admin" or team.owner_id == user.id:
            return
        member = await crud_team.get_member(db, team_id=team.id, user_id=user.id)
        if member is None:
            raise ForbiddenException("You are not a member of this team")

    async def _assert_manager_or_admin(
        self, db: AsyncSession, *, team: Team, user: User
    ) -> None:
        if user.role == "admin" or team.owner_id == user.id:
            return
        member = await crud_team.get_member(db, team_id=team.id, user_id=user.id)
        if member is None or member.role != "manager":
            raise ForbiddenException(
                "Only team managers or admins can perform this action"
            )

    def _assert_owner_or_admin(self, *, team: Team, user: User) -> None:
        if user.role == "admin" or team.owner_id == user.id:
            return
        raise ForbiddenException("Only the team owner or admin can perform this action")


team_service = TeamService()
