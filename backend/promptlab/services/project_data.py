"""Read access to the project data that live variables are computed from.

The resolver talks to a ProjectDataGateway rather than to the ORM so that it
can be driven from any data source. SqlProjectDataGateway is the production
implementation over the shared workspace tables.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptlab.models import (
    Document,
    Project,
    ProjectMember,
    Sprint,
    Task,
    User,
    Workspace,
)

logger = logging.getLogger(__name__)


# ── Records ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


@dataclass(frozen=True)
class WorkspaceRecord:
    id: str
    name: str
    industry: Optional[str] = None
    team_size: Optional[str] = None


@dataclass(frozen=True)
class ProjectRecord:
    id: str
    workspace_id: str
    name: str
    key: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class MemberRecord:
    user_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "MEMBER"
    joined_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.email


@dataclass(frozen=True)
class TaskRecord:
    id: str
    title: str
    status: str = "TODO"
    priority: Optional[str] = None
    assignee_id: Optional[str] = None
    sprint_id: Optional[str] = None
    points: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class SprintRecord:
    id: str
    name: str
    goal: Optional[str] = None
    status: str = "PLANNING"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass(frozen=True)
class DocumentRecord:
    id: str
    title: str
    content: Any = None
    updated_at: Optional[datetime] = None


def record_field_names(record_type: type) -> frozenset[str]:
    return frozenset(f.name for f in fields(record_type))


def record_matches(record: Any, filters: Optional[dict[str, Any]]) -> bool:
    """Equality match on every filter key; keys the record lacks never match."""
    if not filters:
        return True
    for key, expected in filters.items():
        if not hasattr(record, key) or getattr(record, key) != expected:
            return False
    return True


# ── Gateway ──────────────────────────────────────────────────────


class ProjectDataGateway(ABC):
    """Read-only view over users, projects and their tasks, sprints, documents
    and members. Filters are snake_case field -> exact value."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        ...

    @abstractmethod
    async def get_workspace(self, project_id: str) -> Optional[WorkspaceRecord]:
        """Workspace that owns the given project."""
        ...

    @abstractmethod
    async def list_tasks(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[TaskRecord]:
        ...

    @abstractmethod
    async def list_sprints(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[SprintRecord]:
        ...

    @abstractmethod
    async def list_documents(self, project_id: str) -> list[DocumentRecord]:
        ...

    @abstractmethod
    async def list_members(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[MemberRecord]:
        ...


def _where_equal(stmt, model, filters: Optional[dict[str, Any]]):
    for key, value in (filters or {}).items():
        column = getattr(model, key, None)
        if column is None:
            logger.warning(f"Ignoring filter on unknown {model.__tablename__} column '{key}'")
            continue
        stmt = stmt.where(column == value)
    return stmt


class SqlProjectDataGateway(ProjectDataGateway):
    """Gateway over the workspace tables using the request's AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        user = await self.db.get(User, user_id)
        if not user:
            return None
        return UserRecord(id=user.id, email=user.email, first_name=user.first_name, last_name=user.last_name)

    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        project = await self.db.get(Project, project_id)
        if not project:
            return None
        return ProjectRecord(
            id=project.id,
            workspace_id=project.workspace_id,
            name=project.name,
            key=project.key,
            description=project.description,
            status=project.status,
        )

    async def get_workspace(self, project_id: str) -> Optional[WorkspaceRecord]:
        result = await self.db.execute(
            select(Workspace).join(Project, Project.workspace_id == Workspace.id).where(Project.id == project_id)
        )
        ws = result.scalar_one_or_none()
        if not ws:
            return None
        return WorkspaceRecord(id=ws.id, name=ws.name, industry=ws.industry, team_size=ws.team_size)

    async def list_tasks(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[TaskRecord]:
        stmt = select(Task).where(Task.project_id == project_id)
        stmt = _where_equal(stmt, Task, filters).order_by(Task.created_at, Task.id)
        result = await self.db.execute(stmt)
        return [
            TaskRecord(
                id=t.id,
                title=t.title,
                status=t.status,
                priority=t.priority,
                assignee_id=t.assignee_id,
                sprint_id=t.sprint_id,
                points=t.points,
                created_at=t.created_at,
            )
            for t in result.scalars().all()
        ]

    async def list_sprints(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[SprintRecord]:
        stmt = select(Sprint).where(Sprint.project_id == project_id)
        stmt = _where_equal(stmt, Sprint, filters).order_by(Sprint.start_date, Sprint.id)
        result = await self.db.execute(stmt)
        return [
            SprintRecord(
                id=s.id,
                name=s.name,
                goal=s.goal,
                status=s.status,
                start_date=s.start_date,
                end_date=s.end_date,
            )
            for s in result.scalars().all()
        ]

    async def list_documents(self, project_id: str) -> list[DocumentRecord]:
        result = await self.db.execute(
            select(Document).where(Document.project_id == project_id).order_by(Document.updated_at.desc())
        )
        return [
            DocumentRecord(id=d.id, title=d.title, content=d.content, updated_at=d.updated_at)
            for d in result.scalars().all()
        ]

    async def list_members(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[MemberRecord]:
        stmt = (
            select(ProjectMember, User)
            .join(User, User.id == ProjectMember.user_id)
            .where(ProjectMember.project_id == project_id)
        )
        stmt = _where_equal(stmt, ProjectMember, filters).order_by(ProjectMember.joined_at, ProjectMember.id)
        result = await self.db.execute(stmt)
        return [
            MemberRecord(
                user_id=user.id,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                role=member.role,
                joined_at=member.joined_at,
            )
            for member, user in result.all()
        ]
