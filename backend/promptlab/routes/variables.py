"""Live variable preview routes."""
from fastapi import APIRouter, Depends

from promptlab.dependencies import get_current_user_id, get_gateway, get_resolver
from promptlab.schemas.prompt import ResolveVariableRequest, ResolveVariableResponse
from promptlab.services import prompt_service
from promptlab.services.project_data import ProjectDataGateway
from promptlab.services.variable_resolver import VariableSourceResolver

router = APIRouter(prefix="/api/variables", tags=["variables"])


@router.post("/resolve", response_model=ResolveVariableResponse)
async def resolve_variable(
    body: ResolveVariableRequest,
    user_id: str = Depends(get_current_user_id),
    gateway: ProjectDataGateway = Depends(get_gateway),
    resolver: VariableSourceResolver = Depends(get_resolver),
):
    """Resolve one source without saving it, for editor previews."""
    value = await prompt_service.resolve_variable(gateway, resolver, user_id, body.source, body.project_id)
    return ResolveVariableResponse(value=value)
