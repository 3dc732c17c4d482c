"""
Project and ProjectMember CRUD operations.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskhub.crud.base import CRUDBase
from taskhub.db.base import utcnow
from taskhub.models.project import Project, ProjectMember
from taskhub.models.task import Task
from taskhub.schemas.project import ProjectCreate, ProjectUpdate


class CRUDProject(CRUDBase[Project, ProjectCreate, ProjectUpdate]):

    async def create_project(
        self, db: AsyncSession, *, obj_in: ProjectCreate, owner_id: uuid.UUID
    ) -> Project:
        """Create a project and register the creator as a manager member."""
        project = Project(
            **obj_in.model_dump(),
            owner_id=owner_id,
        )
        db.add(project)
        await db.flush()

        db.add(ProjectMember(project_id=project.id, user_id=owner_id, role="manager"))
        await db.flush()
        await db.refresh(project)
        return project

    async def get_active(self, db: AsyncSession, project_id: uuid.UUID) -> Project | None:
        """Fetch a project that has not been soft-deleted."""
        result = await db.execute(
            select(Project).where(Project.id == project_id, Project.is_deleted.is_(False))
        )
        return result.scalar_one_or_none()

    async def get_with_members(
        self, db: AsyncSession, project_id: uuid.UUID
    ) -> Project | None:
        result = await db.execute(
            select(Project)
            .options(selectinload(Project.members).selectinload(ProjectMember.user))
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_visible(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID | None,
        team_ids: list[uuid.UUID],
        status: str | None = None,
        team_id: uuid.UUID | None = None,
        search: str | None = None,
        include_deleted: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Project], int]:
        """
        Return (projects, total) the user owns, is a member of, or can see
        through team membership. ``user_id=None`` lists every project (admin).
        """
        query = select(Project)
        if user_id is not None:
            member_ids = select(ProjectMember.project_id).where(
                ProjectMember.user_id == user_id
            )
            conditions = [Project.owner_id == user_id, Project.id.in_(member_ids)]
            if team_ids:
                conditions.append(Project.team_id.in_(team_ids))
            query = query.where(or_(*conditions))
        if not include_deleted:
            query = query.where(Project.is_deleted.is_(False))
        if status is not None:
            query = query.where(Project.status == status)
        if team_id is not None:
            query = query.where(Project.team_id == team_id)
        if search:
            query = query.where(Project.name.ilike(f"%{search}%"))

        return await self.fetch_page(
            db, query.order_by(Project.created_at.desc()), skip=skip, limit=limit
        )

    async def get_user_project_ids(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> list[uuid.UUID]:
        result = await db.execute(
            select(ProjectMember.project_id)
            .join(Project, Project.id == ProjectMember.project_id)
            .where(ProjectMember.user_id == user_id, Project.is_deleted.is_(False))
        )
        return list(result.scalars().all())

    # ── Membership ────────────────────────────────────────────────────────────

    async def get_member(
        self, db: AsyncSession, *, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> ProjectMember | None:
        return await db.get(ProjectMember, (project_id, user_id))

    async def add_member(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str = "member",
    ) -> ProjectMember:
        member = ProjectMember(project_id=project_id, user_id=user_id, role=role)
        db.add(member)
        await db.flush()
        await db.refresh(member, attribute_names=["user", "added_at"])
        return member

    async def update_member_role(
        self, db: AsyncSession, *, member: ProjectMember, role: str
    ) -> ProjectMember:
        member.role = role
        db.add(member)
        await db.flush()
        return member

    async def remove_member(self, db: AsyncSession, *, member: ProjectMember) -> None:
        await db.delete(member)
        await db.flush()

    # ── Soft delete ───────────────────────────────────────────────────────────

    async def soft_delete(
        self, db: AsyncSession, *, project: Project, deleted_by_id: uuid.UUID
    ) -> Project:
        project.is_deleted = True
        project.deleted_at = utcnow()
        project.deleted_by_id = deleted_by_id
        db.add(project)
        await db.flush()
        await db.refresh(project)
        return project

    async def restore(self, db: AsyncSession, *, project: Project) -> Project:
        project.is_deleted = False
        project.deleted_at = None
        project.deleted_by_id = None
        db.add(project)
        await db.flush()
        await db.refresh(project)
        return project

    async def purge_deleted_before(self, db: AsyncSession, *, cutoff: datetime) -> int:
        """Hard-delete soft-deleted projects (and their tasks) older than ``cutoff``."""
        result = await db.execute(
            select(Project).where(
                Project.is_deleted.is_(True), Project.deleted_at < cutoff
            )
        )
        projects = list(result.scalars().all())
        for project in projects:
            await db.delete(project)
        await db.flush()
        return len(projects)

    async def progress(self, db: AsyncSession, *, project_id: uuid.UUID) -> int:
        """Percentage of non-archived tasks in the project that are completed."""
        result = await db.execute(
            select(
                func.count(Task.id),
                func.coalesce(func.sum(case((Task.status == "completed", 1), else_=0)), 0),
            ).where(Task.project_id == project_id, Task.is_archived.is_(False))
        )
        total, done = result.one()
        if not total:
            return 0
        return round(done * 100 / total)

    async def count_active_projects(self, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count()).select_from(Project).where(Project.is_deleted.is_(False))
        )
        return result.scalar_one()


crud_project = CRUDProject(Project)
