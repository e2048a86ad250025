"""FastAPI dependencies shared by the routers."""
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from promptlab.config import settings
from promptlab.database import get_db
from promptlab.errors import UnauthenticatedError
from promptlab.services.project_data import ProjectDataGateway, SqlProjectDataGateway
from promptlab.services.variable_resolver import VariableSourceResolver


async def get_current_user_id(request: Request) -> str:
    """Caller identity, forwarded by the upstream auth proxy as a header."""
    user_id: Optional[str] = request.headers.get(settings.AUTH_USER_HEADER)
    if not user_id or not user_id.strip():
        raise UnauthenticatedError("Authentication required")
    return user_id.strip()


async def get_gateway(db: AsyncSession = Depends(get_db)) -> ProjectDataGateway:
    return SqlProjectDataGateway(db)


async def get_resolver(gateway: ProjectDataGateway = Depends(get_gateway)) -> VariableSourceResolver:
    return VariableSourceResolver(gateway)
