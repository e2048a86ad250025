"""Prompts API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from promptlab.database import get_db
from promptlab.dependencies import get_current_user_id, get_gateway, get_resolver
from promptlab.schemas.common import OwnerScope
from promptlab.schemas.prompt import (
    PromptCreate,
    PromptDetail,
    PromptPage,
    PromptSummary,
    PromptUpdate,
    RenderResponse,
    RestoreRequest,
    SnapshotRequest,
    Version,
)
from promptlab.services import prompt_service
from promptlab.services.project_data import ProjectDataGateway
from promptlab.services.variable_resolver import VariableSourceResolver

router = APIRouter(prefix="/api/prompts", tags=["prompts"])


@router.get("", response_model=PromptPage)
async def list_prompts(
    project_id: Optional[str] = Query(None, alias="projectId"),
    skip: int = Query(0, ge=0),
    take: Optional[int] = Query(None, ge=1),
    q: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    """List prompt summaries for a project, or the caller's personal prompts."""
    scope = OwnerScope(project_id=project_id)
    return await prompt_service.list_prompts(db, gateway, user_id, scope, skip=skip, take=take, q=q)


@router.get("/{prompt_id}", response_model=PromptDetail)
async def get_prompt(
    prompt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    return await prompt_service.get_prompt_detail(db, gateway, user_id, prompt_id)


@router.get("/{prompt_id}/versions/{version_id}", response_model=Version)
async def get_prompt_version(
    prompt_id: str,
    version_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    return await prompt_service.get_prompt_version(db, gateway, user_id, prompt_id, version_id)


@router.get("/{prompt_id}/render", response_model=RenderResponse)
async def render_prompt(
    prompt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
    resolver: VariableSourceResolver = Depends(get_resolver),
):
    """Compose the live content with every variable resolved."""
    text = await prompt_service.render_prompt(db, gateway, resolver, user_id, prompt_id)
    return RenderResponse(text=text)


@router.post("", response_model=PromptDetail, status_code=201)
async def create_prompt(
    body: PromptCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    return await prompt_service.create_prompt(db, gateway, user_id, body)


@router.patch("/{prompt_id}", response_model=PromptDetail)
async def update_prompt(
    prompt_id: str,
    body: PromptUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    """Update a prompt. Only provided fields are updated."""
    return await prompt_service.update_prompt(db, gateway, user_id, prompt_id, body)


@router.delete("/{prompt_id}", response_model=PromptSummary)
async def delete_prompt(
    prompt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    return await prompt_service.delete_prompt(db, gateway, user_id, prompt_id)


@router.post("/{prompt_id}/snapshots", response_model=PromptDetail)
async def snapshot_prompt(
    prompt_id: str,
    body: Optional[SnapshotRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    """Save the live content as a new version (newest first)."""
    notes = body.notes if body else None
    return await prompt_service.snapshot(db, gateway, user_id, prompt_id, notes)


@router.post("/{prompt_id}/restore", response_model=PromptDetail)
async def restore_prompt_version(
    prompt_id: str,
    body: RestoreRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: ProjectDataGateway = Depends(get_gateway),
):
    return await prompt_service.restore_version(db, gateway, user_id, prompt_id, body.version_id)
