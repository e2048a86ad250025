"""Live variable resolution.

Turns a VariableSource descriptor into a display string using project data
from a ProjectDataGateway. Ordinary "no data" conditions come back as
sentinel strings ("N/A (...)", "No tasks found") rather than exceptions, so a
prompt always renders.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Optional

from pydantic.alias_generators import to_snake

from promptlab.config import settings
from promptlab.services.document_text import document_to_text
from promptlab.services.project_data import (
    DocumentRecord,
    MemberRecord,
    ProjectDataGateway,
    SprintRecord,
    TaskRecord,
    record_field_names,
    record_matches,
)

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
PROJECT_CONTEXT_REQUIRED = "N/A (Project context required)"
RESOLUTION_FAILED = "N/A (Resolution failed)"

CURRENT_USER_TOKENS = frozenset({"current_user", "CURRENT_USER_ID"})
UPPERCASE_FILTER_KEYS = frozenset({"status", "priority", "role"})
LATEST_TOKEN = "latest"
CURRENT_SPRINT_TOKEN = "current_sprint"

# Filterable fields per entity, after camelCase -> snake_case normalisation
TASK_FILTER_KEYS = frozenset({"id", "status", "priority", "assignee_id", "sprint_id", "points", "title"})
SPRINT_FILTER_KEYS = frozenset({"id", "status", "name", "goal"})
DOCUMENT_FILTER_KEYS = frozenset({"id", "title"})
MEMBER_FILTER_KEYS = frozenset({"user_id", "role"})


def not_available(reason: str) -> str:
    return f"{NOT_AVAILABLE} ({reason})"


def is_sentinel(value: str) -> bool:
    """True for the "N/A" family; "No X found" strings are real values."""
    return value == NOT_AVAILABLE or value.startswith(NOT_AVAILABLE + " (")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _display(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_list(values: Iterable[str], fmt: str) -> str:
    values = [v for v in values if v]
    if fmt == "BULLET_POINTS":
        return "\n".join(f"• {v}" for v in values)
    return ", ".join(values)


@dataclass(frozen=True)
class ResolutionContext:
    """Who is asking and which project, if any, is in scope."""
    user_id: str
    project_id: Optional[str] = None


class VariableSourceResolver:
    """Resolves VariableSource values against a ProjectDataGateway.

    Stateless between calls; one instance may serve a whole request.
    """

    def __init__(
        self,
        gateway: ProjectDataGateway,
        clock: Callable[[], datetime] = _utcnow,
        pick: Optional[str] = None,
        list_limit: Optional[int] = None,
    ):
        self.gateway = gateway
        self.clock = clock
        self.pick = (pick or settings.SINGLE_ENTITY_PICK).lower()
        if self.pick not in ("newest", "oldest"):
            raise ValueError(f"pick must be 'newest' or 'oldest', got '{self.pick}'")
        self.list_limit = list_limit if list_limit is not None else settings.RESOLVER_LIST_LIMIT

    async def resolve(self, source, ctx: ResolutionContext) -> str:
        """Resolve one source to a string. Never raises."""
        try:
            return await self._dispatch(source, ctx)
        except Exception:
            logger.exception(f"Failed to resolve {source.type} source for project {ctx.project_id}")
            return RESOLUTION_FAILED

    async def _dispatch(self, source, ctx: ResolutionContext) -> str:
        if source.type == "USER_FIELD":
            return await self._user_field(source, ctx)
        if source.type == "DATE_FUNCTION":
            return self._date_function(source)

        if not ctx.project_id:
            return PROJECT_CONTEXT_REQUIRED
        project = await self.gateway.get_project(ctx.project_id)
        if project is None:
            return not_available("Project not found")

        if source.type == "PROJECT_FIELD":
            return await self._project_field(source, project, ctx)
        if source.type == "WORKSPACE_FIELD":
            workspace = await self.gateway.get_workspace(ctx.project_id)
            if workspace is None:
                return not_available("Workspace not found")
            return self._read_field(workspace, source.field)
        if source.type == "TASKS_AGGREGATION":
            return await self._tasks_aggregation(source, ctx)
        if source.type == "SINGLE_TASK_FIELD":
            return await self._single_task_field(source, ctx)
        if source.type == "SPRINT_AGGREGATION":
            return await self._sprint_aggregation(source, ctx)
        if source.type == "SPRINT_FIELD":
            return await self._sprint_field(source, ctx)
        if source.type == "DOCUMENT_AGGREGATION":
            return await self._document_aggregation(source, ctx)
        if source.type == "DOCUMENT_FIELD":
            return await self._document_field(source, ctx)
        if source.type == "MEMBER_LIST":
            return await self._member_list(source, ctx)
        return not_available(f"Unsupported source: {source.type}")

    # ── Field access ─────────────────────────────────────────────

    @staticmethod
    def _read_field(record, field: str) -> str:
        name = to_snake(field)
        if name not in record_field_names(type(record)):
            return not_available(f"Unknown field: {field}")
        return _display(getattr(record, name)) or NOT_AVAILABLE

    async def _user_field(self, source, ctx: ResolutionContext) -> str:
        user = await self.gateway.get_user(ctx.user_id)
        if user is None:
            return not_available("Current user data not found")
        if to_snake(source.field) == "full_name":
            return user.full_name or NOT_AVAILABLE
        return self._read_field(user, source.field)

    def _date_function(self, source) -> str:
        now = self.clock()
        fn = to_snake(source.field)
        if fn == "today":
            return now.date().isoformat()
        if fn == "now":
            return now.replace(microsecond=0).isoformat()
        if fn == "year":
            return str(now.year)
        if fn == "day_of_week":
            return now.strftime("%A")
        return not_available(f"Unknown date function: {source.field}")

    async def _project_field(self, source, project, ctx: ResolutionContext) -> str:
        name = to_snake(source.field)
        if name == "total_task_count":
            return str(len(await self.gateway.list_tasks(ctx.project_id)))
        if name == "completed_task_count":
            return str(len(await self.gateway.list_tasks(ctx.project_id, {"status": "DONE"})))
        return self._read_field(project, source.field)

    def _pick_one(self, records: list, key: Callable):
        """Deterministic single-entity choice: by key, then id, per self.pick."""
        if not records:
            return None
        ordered = sorted(records, key=lambda r: (key(r) is None, key(r) or 0, r.id))
        dated = [r for r in ordered if key(r) is not None] or ordered
        return dated[-1] if self.pick == "newest" else dated[0]

    async def _single_task_field(self, source, ctx: ResolutionContext) -> str:
        if source.entity_id and source.entity_id != LATEST_TOKEN:
            tasks = await self.gateway.list_tasks(ctx.project_id, {"id": source.entity_id})
            task = tasks[0] if tasks else None
        else:
            task = self._pick_one(await self.gateway.list_tasks(ctx.project_id), lambda t: t.created_at)
        if task is None:
            return not_available("Task not found")
        return self._read_field(task, source.field)

    async def _sprint_field(self, source, ctx: ResolutionContext) -> str:
        entity_id = source.entity_id
        if entity_id == CURRENT_SPRINT_TOKEN:
            sprints = await self.gateway.list_sprints(ctx.project_id, {"status": "ACTIVE"})
            sprint = self._pick_one(sprints, lambda s: s.start_date)
        elif entity_id and entity_id != LATEST_TOKEN:
            sprints = await self.gateway.list_sprints(ctx.project_id, {"id": entity_id})
            sprint = sprints[0] if sprints else None
        else:
            sprint = self._pick_one(await self.gateway.list_sprints(ctx.project_id), lambda s: s.start_date)
        if sprint is None:
            return not_available("Sprint not found")
        return self._read_field(sprint, source.field)

    async def _document_field(self, source, ctx: ResolutionContext) -> str:
        documents = await self.gateway.list_documents(ctx.project_id)
        entity_id = source.entity_id
        if entity_id and entity_id != LATEST_TOKEN:
            document = next((d for d in documents if d.id == entity_id), None)
        else:
            document = self._pick_one(documents, lambda d: d.updated_at)
        if document is None:
            return not_available("Document not found")
        if to_snake(source.field) == "content":
            return document_to_text(document.content) or NOT_AVAILABLE
        return self._read_field(document, source.field)

    # ── Aggregations ─────────────────────────────────────────────

    def _normalise_filter(self, raw: Optional[dict], allowed: frozenset, ctx: ResolutionContext) -> dict:
        filters: dict[str, Any] = {}
        for key, value in (raw or {}).items():
            name = to_snake(key)
            if name not in allowed:
                logger.warning(f"Ignoring unsupported filter key '{key}'")
                continue
            if value is None or value == "":
                continue
            if isinstance(value, str):
                if value in CURRENT_USER_TOKENS:
                    value = ctx.user_id
                elif name in UPPERCASE_FILTER_KEYS:
                    value = value.upper()
            filters[name] = value
        return filters

    def _aggregate(self, records: list, source, noun: str, label: Callable[[Any], str]) -> str:
        if source.aggregation == "COUNT":
            return str(len(records))
        if not records:
            return f"No {noun} found"
        return format_list((label(r) for r in records[: self.list_limit]), source.format)

    async def _tasks_aggregation(self, source, ctx: ResolutionContext) -> str:
        filters = self._normalise_filter(source.filter, TASK_FILTER_KEYS, ctx)
        tasks: list[TaskRecord] = await self.gateway.list_tasks(ctx.project_id, filters)
        tasks.sort(key=lambda t: (t.created_at is None, t.created_at or 0, t.id))
        return self._aggregate(tasks, source, "tasks", lambda t: t.title)

    async def _sprint_aggregation(self, source, ctx: ResolutionContext) -> str:
        filters = self._normalise_filter(source.filter, SPRINT_FILTER_KEYS, ctx)
        sprints: list[SprintRecord] = await self.gateway.list_sprints(ctx.project_id, filters)
        sprints.sort(key=lambda s: (s.start_date is None, s.start_date or 0, s.id))
        return self._aggregate(sprints, source, "sprints", lambda s: s.name)

    async def _document_aggregation(self, source, ctx: ResolutionContext) -> str:
        filters = self._normalise_filter(source.filter, DOCUMENT_FILTER_KEYS, ctx)
        documents: list[DocumentRecord] = [
            d for d in await self.gateway.list_documents(ctx.project_id) if record_matches(d, filters)
        ]
        # Most recently updated first; ties broken by id
        documents.sort(key=lambda d: d.id)
        documents.sort(key=lambda d: (d.updated_at is not None, d.updated_at or 0), reverse=True)
        return self._aggregate(documents, source, "documents", lambda d: d.title)

    async def _member_list(self, source, ctx: ResolutionContext) -> str:
        filters = self._normalise_filter(source.filter, MEMBER_FILTER_KEYS, ctx)
        members: list[MemberRecord] = await self.gateway.list_members(ctx.project_id, filters)
        members.sort(key=lambda m: (m.joined_at is None, m.joined_at or 0, m.user_id))
        return self._aggregate(members, source, "members", lambda m: m.display_name)
