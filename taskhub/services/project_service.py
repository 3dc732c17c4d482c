"""
Project business logic service.
Resolves a user's effective role on a project from direct membership and
team membership, and enforces it for every project operation.
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
from taskhub.crud.project import crud_project
from taskhub.crud.task import crud_task
from taskhub.crud.team import crud_team
from taskhub.crud.user import crud_user
from taskhub.db.base import utcnow
from taskhub.models.project import Project, ProjectMember
from taskhub.models.user import User
from taskhub.realtime.events import PROJECT_UPDATED, emit, project_room
from taskhub.schemas.project import (
    ProjectCreate,
    ProjectMemberAdd,
    ProjectRead,
    ProjectStats,
    ProjectUpdate,
)
from taskhub.services.activity_service import activity_service, detect_changes
from taskhub.services.notification_service import notification_service

ROLE_RANK = {"viewer": 0, "member": 1, "manager": 2}


class ProjectService:

    # ── Access ────────────────────────────────────────────────────────────────

    async def effective_role(
        self, db: AsyncSession, *, project: Project, user: User
    ) -> str | None:
        """
        Strongest role the user holds on the project, or None without access.
        Admins and the owner act as managers; team managers manage the team's
        projects and other team members contribute as members.
        """
        if user.role == "admin" or project.owner_id == user.id:
            return "manager"
        roles: list[str] = []
        member = await crud_project.get_member(db, project_id=project.id, user_id=user.id)
        if member is not None:
            roles.append(member.role)
        if project.team_id is not None:
            team_member = await crud_team.get_member(
                db, team_id=project.team_id, user_id=user.id
            )
            if team_member is not None:
                roles.append("manager" if team_member.role == "manager" else "member")
        if not roles:
            return None
        return max(roles, key=ROLE_RANK.__getitem__)

    async def has_role(
        self, db: AsyncSession, *, project: Project, user: User, minimum: str
    ) -> bool:
        role = await self.effective_role(db, project=project, user=user)
        return role is not None and ROLE_RANK[role] >= ROLE_RANK[minimum]

    async def get_accessible(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        current_user: User,
        minimum: str = "viewer",
    ) -> Project:
        """Load a live project and require at least ``minimum`` on it."""
        project = await crud_project.get_active(db, project_id)
        if project is None:
            raise NotFoundException("Project", str(project_id))
        if not await self.has_role(db, project=project, user=current_user, minimum=minimum):
            if minimum == "viewer":
                raise ForbiddenException("You do not have access to this project")
            raise ForbiddenException(f"This action requires the project {minimum} role")
        return project

    # ── CRUD ──────────────────────────────────────────────────────────────────

    async def create_project(
        self, db: AsyncSession, *, project_in: ProjectCreate, current_user: User
    ) -> Project:
        if project_in.team_id is not None and current_user.role != "admin":
            member = await crud_team.get_member(
                db, team_id=project_in.team_id, user_id=current_user.id
            )
            if member is None:
                raise ForbiddenException(
                    "You must be a member of the team to create projects for it"
                )

        project = await crud_project.create_project(
            db, obj_in=project_in, owner_id=current_user.id
        )
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_created",
            entity_type="project",
            entity_id=project.id,
            team_id=project.team_id,
            project_id=project.id,
            meta={"name": project.name},
        )
        return await self.get_detail(db, project_id=project.id, current_user=current_user)

    async def get_detail(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> Project:
        """Fetch a live project with members loaded, enforcing visibility."""
        project = await crud_project.get_with_members(db, project_id)
        if project is None or project.is_deleted:
            raise NotFoundException("Project", str(project_id))
        if await self.effective_role(db, project=project, user=current_user) is None:
            raise ForbiddenException("You do not have access to this project")
        return project

    async def list_projects(
        self,
        db: AsyncSession,
        *,
        current_user: User,
        status: str | None,
        team_id: uuid.UUID | None,
        search: str | None,
        skip: int,
        limit: int,
    ) -> tuple[list[Project], int]:
        if current_user.role == "admin":
            return await crud_project.list_visible(
                db,
                user_id=None,
                team_ids=[],
                status=status,
                team_id=team_id,
                search=search,
                skip=skip,
                limit=limit,
            )
        team_ids = await crud_team.get_user_team_ids(db, user_id=current_user.id)
        return await crud_project.list_visible(
            db,
            user_id=current_user.id,
            team_ids=team_ids,
            status=status,
            team_id=team_id,
            search=search,
            skip=skip,
            limit=limit,
        )

    async def update_project(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        project_in: ProjectUpdate,
        current_user: User,
    ) -> Project:
        project = await self.get_accessible(
            db, project_id=project_id, current_user=current_user, minimum="manager"
        )
        updates = project_in.model_dump(exclude_unset=True)
        if "status" in updates:
            if updates["status"] == "completed" and project.status != "completed":
                updates["completed_at"] = utcnow()
            elif updates["status"] != "completed":
                updates["completed_at"] = None
        changes = detect_changes(project, updates, exclude=("completed_at",))

        await crud_project.update(db, db_obj=project, obj_in=updates)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_updated",
            entity_type="project",
            entity_id=project.id,
            team_id=project.team_id,
            project_id=project.id,
            meta={"changes": changes},
        )
        await self._emit_updated(project)
        return await self.get_detail(db, project_id=project.id, current_user=current_user)

    async def archive_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> Project:
        project = await self.get_accessible(
            db, project_id=project_id, current_user=current_user, minimum="manager"
        )
        await crud_project.update(db, db_obj=project, obj_in={"status": "archived"})
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_archived",
            entity_type="project",
            entity_id=project.id,
            team_id=project.team_id,
            project_id=project.id,
        )
        await self._emit_updated(project)
        return await self.get_detail(db, project_id=project.id, current_user=current_user)

    async def delete_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> None:
        """Soft-delete the project and archive its tasks."""
        project = await crud_project.get_active(db, project_id)
        if project is None:
            raise NotFoundException("Project", str(project_id))
        self._assert_owner_or_admin(project=project, user=current_user)

        await crud_project.soft_delete(db, project=project, deleted_by_id=current_user.id)
        archived = await crud_task.archive_by_project(db, project_id=project.id)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_deleted",
            entity_type="project",
            entity_id=project.id,
            team_id=project.team_id,
            project_id=project.id,
            meta={"archived_tasks": archived},
        )

    async def restore_project(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> Project:
        project = await crud_project.get(db, project_id)
        if project is None or not project.is_deleted:
            raise NotFoundException("Deleted project", str(project_id))
        self._assert_owner_or_admin(project=project, user=current_user)

        deleted_at = project.deleted_at
        await crud_project.restore(db, project=project)
        restored = 0
        if deleted_at is not None:
            restored = await crud_task.restore_by_project(
                db, project_id=project.id, archived_since=deleted_at
            )
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_restored",
            entity_type="project",
            entity_id=project.id,
            team_id=project.team_id,
            project_id=project.id,
            meta={"restored_tasks": restored},
        )
        return await self.get_detail(db, project_id=project.id, current_user=current_user)

    async def get_stats(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> ProjectStats:
        await self.get_accessible(db, project_id=project_id, current_user=current_user)
        by_status = await crud_task.count_by_status(db, project_id=project_id)
        by_priority = await crud_task.count_by_priority(db, project_id=project_id)
        return ProjectStats(
            total_tasks=sum(by_status.values()),
            by_status=by_status,
            by_priority=by_priority,
            overdue=await crud_task.count_overdue(db, project_id=project_id),
            progress=await crud_project.progress(db, project_id=project_id),
        )

    # ── Members ───────────────────────────────────────────────────────────────

    async def add_member(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        member_in: ProjectMemberAdd,
        current_user: User,
    ) -> ProjectMember:
        project = await self.get_accessible(
            db, project_id=project_id, current_user=current_user, minimum="manager"
        )
        target = await crud_user.get(db, member_in.user_id)
        if target is None or not target.is_active:
            raise NotFoundException("User", str(member_in.user_id))
        existing = await crud_project.get_member(
            db, project_id=project_id, user_id=member_in.user_id
        )
        if existing is not None:
            raise ConflictException("User is already a member of this project")

        member = await crud_project.add_member(
            db, project_id=project_id, user_id=member_in.user_id, role=member_in.role
        )
        if member_in.user_id != current_user.id:
            await notification_service.notify_project_added(
                db,
                user_id=member_in.user_id,
                project_id=project_id,
                project_name=project.name,
                inviter=current_user,
            )
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_member_added",
            entity_type="project",
            entity_id=project_id,
            team_id=project.team_id,
            project_id=project_id,
            meta={"member_id": member_in.user_id, "role": member_in.role},
        )
        return member

    async def update_member_role(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str,
        current_user: User,
    ) -> ProjectMember:
        project = await self.get_accessible(
            db, project_id=project_id, current_user=current_user, minimum="manager"
        )
        if user_id == project.owner_id:
            raise BadRequestException("The project owner's role cannot be changed")
        member = await crud_project.get_member(db, project_id=project_id, user_id=user_id)
        if member is None:
            raise NotFoundException("Project member", str(user_id))

        old_role = member.role
        updated = await crud_project.update_member_role(db, member=member, role=role)
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_member_role_updated",
            entity_type="project",
            entity_id=project_id,
            team_id=project.team_id,
            project_id=project_id,
            meta={"member_id": user_id, "old_role": old_role, "new_role": role},
        )
        return updated

    async def remove_member(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User,
    ) -> None:
        project = await self.get_accessible(
            db, project_id=project_id, current_user=current_user, minimum="manager"
        )
        if user_id == project.owner_id:
            raise BadRequestException("The project owner cannot be removed")
        member = await crud_project.get_member(db, project_id=project_id, user_id=user_id)
        if member is None:
            raise NotFoundException("Project member", str(user_id))

        await crud_project.remove_member(db, member=member)
        await notification_service.notify_project_removed(
            db, user_id=user_id, project_id=project_id, project_name=project.name
        )
        await activity_service.log(
            db,
            user_id=current_user.id,
            action="project_member_removed",
            entity_type="project",
            entity_id=project_id,
            team_id=project.team_id,
            project_id=project_id,
            meta={"member_id": user_id},
        )

    # ── Private helpers ───────────────────────────────────────────────────────

    def _assert_owner_or_admin(self, *, project: Project, user: User) -> None:
        if project.owner_id != user.id and user.role != "admin":
            raise ForbiddenException("Only the project owner or an admin can do this")

    async def _emit_updated(self, project: Project) -> None:
        data = ProjectRead.model_validate(project).model_dump(mode="json")
        await emit(project_room(project.id), PROJECT_UPDATED, data)


project_service = ProjectService()
