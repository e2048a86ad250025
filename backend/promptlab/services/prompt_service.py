"""Prompt operations: listing, CRUD, snapshots, restore and rendering.

Every operation checks existence and authorization before doing any work.
Personal prompts belong to their creator; project prompts to every member of
the project.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from promptlab.config import settings
from promptlab.errors import BadInputError, ForbiddenError, NotFoundError
from promptlab.models.base import utcnow
from promptlab.models.prompt import Prompt
from promptlab.schemas.common import OwnerScope
from promptlab.schemas.prompt import (
    ContentBlock,
    PromptCreate,
    PromptDetail,
    PromptPage,
    PromptSummary,
    PromptUpdate,
    PromptVariable,
    Version,
)
from promptlab.services.composer import ContentComposer
from promptlab.services.project_data import ProjectDataGateway
from promptlab.services.variable_resolver import ResolutionContext, VariableSourceResolver
from promptlab.services.versioning import find_version, restore_prompt_version, snapshot_prompt

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = (
    Prompt.id,
    Prompt.title,
    Prompt.description,
    Prompt.category,
    Prompt.tags,
    Prompt.is_public,
    Prompt.model,
    Prompt.user_id,
    Prompt.project_id,
    Prompt.created_at,
    Prompt.updated_at,
)


# ── Authorization ────────────────────────────────────────────────


async def ensure_project_member(gateway: ProjectDataGateway, project_id: str, user_id: str) -> None:
    members = await gateway.list_members(project_id, {"user_id": user_id})
    if not members:
        raise ForbiddenError("Not a member of this project")


async def authorize_scope(gateway: ProjectDataGateway, scope: OwnerScope, user_id: str) -> None:
    if not scope.is_personal:
        await ensure_project_member(gateway, scope.project_id, user_id)


async def _load_authorized(
    db: AsyncSession, gateway: ProjectDataGateway, user_id: str, prompt_id: str
) -> Prompt:
    result = await db.execute(select(Prompt).where(Prompt.id == prompt_id))
    prompt = result.scalar_one_or_none()
    if not prompt:
        raise NotFoundError("Prompt not found")
    if prompt.project_id:
        await ensure_project_member(gateway, prompt.project_id, user_id)
    elif prompt.user_id != user_id:
        raise ForbiddenError("Not the owner of this prompt")
    return prompt


# ── Helpers ──────────────────────────────────────────────────────


def _require_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise BadInputError("Title is required")
    return title.strip()


def _prepare_variables(incoming: list[PromptVariable], existing: list[dict]) -> list[dict]:
    """Serialize variables, keeping ids stable across edits.

    A variable sent without an id takes the id of the existing variable with
    the same name, otherwise a fresh one.
    """
    names = [v.name for v in incoming]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise BadInputError(f"Duplicate variable names: {', '.join(duplicates)}")

    ids_by_name = {v.get("name"): v.get("id") for v in existing if v.get("id")}
    prepared = []
    for variable in incoming:
        var_id = variable.id or ids_by_name.get(variable.name) or str(uuid.uuid4())
        prepared.append(variable.model_copy(update={"id": var_id}).model_dump(mode="json"))
    return prepared


def _dump_content(content: list[ContentBlock]) -> list[dict]:
    return [block.model_dump(mode="json") for block in content]


# ── Queries ──────────────────────────────────────────────────────


async def list_prompts(
    db: AsyncSession,
    gateway: ProjectDataGateway,
    user_id: str,
    scope: OwnerScope,
    skip: int = 0,
    take: Optional[int] = None,
    q: Optional[str] = None,
) -> PromptPage:
    """Summary rows for one owner scope, most recently updated first."""
    await authorize_scope(gateway, scope, user_id)

    take = settings.PROMPT_PAGE_SIZE if take is None else take
    take = max(0, min(take, settings.MAX_PROMPT_PAGE_SIZE))
    skip = max(0, skip)

    conditions = [Prompt.project_id == scope.project_id] if scope.project_id else [
        Prompt.project_id.is_(None),
        Prompt.user_id == user_id,
    ]
    if q and q.strip():
        conditions.append(Prompt.title.ilike(f"%{q.strip()}%"))

    total = (await db.execute(select(func.count()).select_from(Prompt).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(*SUMMARY_COLUMNS)
        .where(*conditions)
        .order_by(Prompt.updated_at.desc(), Prompt.id)
        .offset(skip)
        .limit(take)
    )
    rows = [PromptSummary.model_validate(dict(row._mapping)) for row in result.all()]
    return PromptPage(prompts=rows, total_count=total)


async def get_prompt_detail(db: AsyncSession, gateway: ProjectDataGateway, user_id: str, prompt_id: str) -> Prompt:
    return await _load_authorized(db, gateway, user_id, prompt_id)


async def get_prompt_version(
    db: AsyncSession, gateway: ProjectDataGateway, user_id: str, prompt_id: str, version_id: str
) -> Version:
    prompt = await _load_authorized(db, gateway, user_id, prompt_id)
    return Version.model_validate(find_version(prompt, version_id))


async def render_prompt(
    db: AsyncSession,
    gateway: ProjectDataGateway,
    resolver: VariableSourceResolver,
    user_id: str,
    prompt_id: str,
) -> str:
    prompt = await _load_authorized(db, gateway, user_id, prompt_id)
    detail = PromptDetail.model_validate(prompt)
    ctx = ResolutionContext(user_id=user_id, project_id=prompt.project_id)
    return await ContentComposer(resolver).render(detail.content, detail.variables, ctx)


async def resolve_variable(
    gateway: ProjectDataGateway,
    resolver: VariableSourceResolver,
    user_id: str,
    source,
    project_id: Optional[str] = None,
) -> str:
    if project_id:
        await ensure_project_member(gateway, project_id, user_id)
    return await resolver.resolve(source, ResolutionContext(user_id=user_id, project_id=project_id))


# ── Mutations ────────────────────────────────────────────────────


async def create_prompt(db: AsyncSession, gateway: ProjectDataGateway, user_id: str, body: PromptCreate) -> Prompt:
    title = _require_title(body.title)
    if body.project_id:
        await ensure_project_member(gateway, body.project_id, user_id)

    now = utcnow()
    prompt = Prompt(
        title=title,
        description=body.description,
        category=body.category,
        tags=body.tags,
        is_public=body.is_public,
        model=body.model or settings.DEFAULT_PROMPT_MODEL,
        user_id=user_id,
        project_id=body.project_id,
        content=_dump_content(body.content),
        context=body.context,
        variables=_prepare_variables(body.variables, []),
        versions=[],
        created_at=now,
        updated_at=now,
    )
    db.add(prompt)
    await db.commit()
    await db.refresh(prompt)
    logger.info(f"Created prompt {prompt.id} (project={prompt.project_id}, user={user_id})")
    return prompt


async def update_prompt(
    db: AsyncSession, gateway: ProjectDataGateway, user_id: str, prompt_id: str, body: PromptUpdate
) -> Prompt:
    """Apply only the fields present in the request."""
    prompt = await _load_authorized(db, gateway, user_id, prompt_id)

    update_data = body.model_dump(exclude_unset=True)
    if "title" in update_data:
        update_data["title"] = _require_title(body.title)
    if "content" in update_data:
        update_data["content"] = _dump_content(body.content or [])
    if "variables" in update_data:
        update_data["variables"] = _prepare_variables(body.variables or [], prompt.variables or [])
    for key in ("description", "category", "context", "is_public", "tags"):
        if key in update_data and update_data[key] is None:
            del update_data[key]
    if update_data.get("model") is None:
        update_data.pop("model", None)

    for key, value in update_data.items():
        setattr(prompt, key, value)
    prompt.updated_at = utcnow()

    await db.commit()
    await db.refresh(prompt)
    logger.info(f"Updated prompt {prompt.id}: {sorted(update_data)}")
    return prompt


async def delete_prompt(db: AsyncSession, gateway: ProjectDataGateway, user_id: str, prompt_id: str) -> PromptSummary:
    prompt = await _load_authorized(db, gateway, user_id, prompt_id)
    summary = PromptSummary.model_validate(prompt)
    await db.delete(prompt)
    await db.commit()
    logger.info(f"Deleted prompt {prompt_id}")
    return summary


async def snapshot(
    db: AsyncSession, gateway: ProjectDataGateway, user_id: str, prompt_id: str, notes: Optional[str] = None
) -> Prompt:
    prompt = await _load_authorized(db, gateway, user_id, prompt_id)
    snapshot_prompt(prompt, notes)
    await db.commit()
    await db.refresh(prompt)
    return prompt


async def restore_version(
    db: AsyncSession, gateway: ProjectDataGateway, user_id: str, prompt_id: str, version_id: str
) -> Prompt:
    prompt = await _load_authorized(db, gateway, user_id, prompt_id)
    restore_prompt_version(prompt, version_id)
    await db.commit()
    await db.refresh(prompt)
    return prompt
