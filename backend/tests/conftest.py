# ruff: noqa: S101
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from promptlab.dependencies import get_gateway
from promptlab.database import get_db
from promptlab.models import Base
from promptlab.services.project_data import (
    DocumentRecord,
    MemberRecord,
    ProjectDataGateway,
    ProjectRecord,
    SprintRecord,
    TaskRecord,
    UserRecord,
    WorkspaceRecord,
    record_matches,
)
from promptlab.services.variable_resolver import VariableSourceResolver

DAY0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
FROZEN_NOW = datetime(2026, 3, 4, 9, 30, 15, 123456, tzinfo=timezone.utc)

ALICE = "u-alice"
BOB = "u-bob"
CAROL = "u-carol"
PROJECT = "p-apollo"
EMPTY_PROJECT = "p-empty"


def day(n: int) -> datetime:
    return DAY0 + timedelta(days=n)


class InMemoryProjectDataGateway(ProjectDataGateway):
    """Dict-backed gateway; counts calls so tests can check caching."""

    def __init__(self) -> None:
        self.users: dict[str, UserRecord] = {}
        self.projects: dict[str, ProjectRecord] = {}
        self.workspaces: dict[str, WorkspaceRecord] = {}
        self.tasks: dict[str, list[TaskRecord]] = {}
        self.sprints: dict[str, list[SprintRecord]] = {}
        self.documents: dict[str, list[DocumentRecord]] = {}
        self.members: dict[str, list[MemberRecord]] = {}
        self.calls: list[str] = []
        self.fail_on: Optional[str] = None

    def _touch(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"{name} unavailable")

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        self._touch("get_user")
        return self.users.get(user_id)

    async def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        self._touch("get_project")
        return self.projects.get(project_id)

    async def get_workspace(self, project_id: str) -> Optional[WorkspaceRecord]:
        self._touch("get_workspace")
        project = self.projects.get(project_id)
        return self.workspaces.get(project.workspace_id) if project else None

    async def list_tasks(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[TaskRecord]:
        self._touch("list_tasks")
        return [t for t in self.tasks.get(project_id, []) if record_matches(t, filters)]

    async def list_sprints(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[SprintRecord]:
        self._touch("list_sprints")
        return [s for s in self.sprints.get(project_id, []) if record_matches(s, filters)]

    async def list_documents(self, project_id: str) -> list[DocumentRecord]:
        self._touch("list_documents")
        return list(self.documents.get(project_id, []))

    async def list_members(self, project_id: str, filters: Optional[dict[str, Any]] = None) -> list[MemberRecord]:
        self._touch("list_members")
        return [m for m in self.members.get(project_id, []) if record_matches(m, filters)]


def seed_gateway() -> InMemoryProjectDataGateway:
    gw = InMemoryProjectDataGateway()
    gw.users = {
        ALICE: UserRecord(id=ALICE, email="alice@example.com", first_name="Alice", last_name="Smith"),
        BOB: UserRecord(id=BOB, email="bob@example.com", first_name="Bob", last_name="Jones"),
        CAROL: UserRecord(id=CAROL, email="carol@example.com", first_name="Carol"),
    }
    gw.workspaces = {"w-acme": WorkspaceRecord(id="w-acme", name="Acme", industry="Aerospace", team_size="11-50")}
    gw.projects = {
        PROJECT: ProjectRecord(
            id=PROJECT, workspace_id="w-acme", name="Apollo", key="APL", description="Moon shot", status="ACTIVE"
        ),
        EMPTY_PROJECT: ProjectRecord(id=EMPTY_PROJECT, workspace_id="w-acme", name="Empty"),
    }
    # Stored out of creation order on purpose
    gw.tasks = {
        PROJECT: [
            TaskRecord(id="t4", title="Ship it", status="DONE", priority="HIGH", assignee_id=ALICE, created_at=day(4)),
            TaskRecord(id="t1", title="Design schema", status="DONE", assignee_id=ALICE, points=3, created_at=day(1)),
            TaskRecord(id="t3", title="Write docs", status="IN_PROGRESS", assignee_id=ALICE, created_at=day(3)),
            TaskRecord(id="t2", title="Build API", status="DONE", assignee_id=BOB, created_at=day(2)),
        ],
    }
    gw.sprints = {
        PROJECT: [
            SprintRecord(id="s3", name="Sprint 3", status="PLANNING", start_date=day(20)),
            SprintRecord(id="s1", name="Sprint 1", status="COMPLETED", goal="Groundwork", start_date=day(1),
                         end_date=day(14)),
            SprintRecord(id="s2", name="Sprint 2", status="ACTIVE", goal="Launch beta", start_date=day(10),
                         end_date=day(24)),
        ],
    }
    gw.documents = {
        PROJECT: [
            DocumentRecord(
                id="d-brief",
                title="Brief",
                updated_at=day(5),
                content=[
                    {"type": "heading", "props": {"level": 2}, "content": [{"type": "text", "text": "Goals"}]},
                    {"type": "bulletListItem", "content": [{"type": "text", "text": "Land safely"}]},
                ],
            ),
            DocumentRecord(id="d-notes", title="Notes", updated_at=day(8), content="Plain notes"),
        ],
    }
    gw.members = {
        PROJECT: [
            MemberRecord(user_id=CAROL, email="carol@example.com", first_name="Carol", role="MEMBER",
                         joined_at=day(3)),
            MemberRecord(user_id=ALICE, email="alice@example.com", first_name="Alice", last_name="Smith",
                         role="OWNER", joined_at=day(1)),
        ],
        EMPTY_PROJECT: [
            MemberRecord(user_id=ALICE, email="alice@example.com", first_name="Alice", last_name="Smith",
                         role="OWNER", joined_at=day(1)),
        ],
    }
    return gw


@pytest.fixture
def gateway() -> InMemoryProjectDataGateway:
    return seed_gateway()


@pytest.fixture
def resolver(gateway: InMemoryProjectDataGateway) -> VariableSourceResolver:
    return VariableSourceResolver(gateway, clock=lambda: FROZEN_NOW, pick="newest", list_limit=50)


@pytest.fixture
async def session_maker():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest.fixture
async def client(session_maker, gateway: InMemoryProjectDataGateway):
    from promptlab.main import app

    async def _get_db():
        async with session_maker() as session:
            yield session

    async def _get_gateway() -> ProjectDataGateway:
        return gateway

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = _get_gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()


def auth(user_id: str = ALICE) -> dict[str, str]:
    return {"X-User-Id": user_id}
