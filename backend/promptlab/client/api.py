"""Async HTTP client for the prompt API using aiohttp."""
import asyncio
import logging
from typing import Any, Optional, TypeVar, Union

import aiohttp
from pydantic import BaseModel, ValidationError

from promptlab.client.repository import PromptRepository
from promptlab.config import settings
from promptlab.errors import ERRORS_BY_STATUS, BadInputError, PromptLabError
from promptlab.schemas.common import OwnerScope
from promptlab.schemas.prompt import (
    PromptCreate,
    PromptDetail,
    PromptPage,
    PromptSummary,
    PromptUpdate,
    RenderResponse,
    ResolveVariableRequest,
    ResolveVariableResponse,
    Version,
)
from promptlab.schemas.variable_source import VariableSource

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class PromptApiError(PromptLabError):
    """Transport failure or unexpected status; carries status, message and URL."""
    code = "API_ERROR"

    def __init__(self, status: int, message: str, url: str):
        self.status = status
        self.url = url
        self.status_code = status or 503
        super().__init__(message)

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status} from {self.url}: {self.message}"
        return f"Connection error for {self.url}: {self.message}"


class PromptApiClient(PromptRepository):
    """PromptRepository over HTTP.

    Use as an async context manager to share one connection pool across
    calls; without it each call opens a short-lived session.
    """

    def __init__(
        self,
        user_id: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if not user_id:
            raise ValueError("user_id is required")
        self.user_id = user_id
        self.base_url = (base_url or settings.CLIENT_API_BASE_URL).rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None
        self._timeout = aiohttp.ClientTimeout(total=timeout or settings.CLIENT_TIMEOUT_SECONDS)

    async def open(self) -> None:
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "PromptApiClient":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ── Transport ────────────────────────────────────────────────

    async def _request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        headers = {settings.AUTH_USER_HEADER: self.user_id, "Accept": "application/json"}
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            if self._session:
                return await self._send(self._session, method, url, headers, json, params)
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                return await self._send(session, method, url, headers, json, params)
        except PromptLabError:
            raise
        except asyncio.TimeoutError as e:
            raise PromptApiError(status=0, message="Request timed out", url=url) from e
        except aiohttp.ClientError as e:
            raise PromptApiError(status=0, message=str(e) or type(e).__name__, url=url) from e

    @staticmethod
    async def _send(session: aiohttp.ClientSession, method, url, headers, json, params) -> Any:
        async with session.request(method, url, json=json, params=params, headers=headers) as resp:
            if resp.status >= 400:
                raise await PromptApiClient._error_for(resp, url)
            return await resp.json()

    @staticmethod
    async def _error_for(resp: aiohttp.ClientResponse, url: str) -> PromptLabError:
        try:
            body = await resp.json()
            detail = body.get("detail") if isinstance(body, dict) else None
        except (aiohttp.ContentTypeError, ValueError):
            detail = (await resp.text())[:500]
        message = detail if isinstance(detail, str) else str(detail or resp.reason or "No response body")
        logger.warning(f"{resp.method} {url} returned {resp.status}: {message}")
        if resp.status == 422:
            return BadInputError(message)
        error_cls = ERRORS_BY_STATUS.get(resp.status)
        if error_cls:
            return error_cls(message)
        return PromptApiError(status=resp.status, message=message, url=url)

    @staticmethod
    def _body(model) -> dict:
        # Only top-level fields the caller set; nested values are sent whole
        return model.model_dump(mode="json", by_alias=True, include=set(model.model_fields_set))

    # ── Operations ───────────────────────────────────────────────

    async def _fetch(self, model: type[M], method: str, path: str, **kwargs) -> M:
        data = await self._request(method, path, **kwargs)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            url = f"{self.base_url}{path}"
            logger.warning(f"{method} {url} returned a body that is not a {model.__name__}: {e}")
            # The server answered, but not with anything usable: a bad gateway
            raise PromptApiError(status=502, message=f"Malformed {model.__name__} response", url=url) from e

    async def list_prompts(
        self, scope: OwnerScope, skip: int = 0, take: Optional[int] = None, q: Optional[str] = None
    ) -> PromptPage:
        params = {"projectId": scope.project_id, "skip": skip, "take": take, "q": q}
        return await self._fetch(PromptPage, "GET", "/api/prompts", params=params)

    async def get_prompt(self, prompt_id: str) -> PromptDetail:
        return await self._fetch(PromptDetail, "GET", f"/api/prompts/{prompt_id}")

    async def get_version(self, prompt_id: str, version_id: str) -> Version:
        return await self._fetch(Version, "GET", f"/api/prompts/{prompt_id}/versions/{version_id}")

    async def render_prompt(self, prompt_id: str) -> str:
        rendered = await self._fetch(RenderResponse, "GET", f"/api/prompts/{prompt_id}/render")
        return rendered.text

    async def create_prompt(self, body: PromptCreate) -> PromptDetail:
        return await self._fetch(PromptDetail, "POST", "/api/prompts", json=self._body(body))

    async def update_prompt(self, prompt_id: str, body: PromptUpdate) -> PromptDetail:
        return await self._fetch(PromptDetail, "PATCH", f"/api/prompts/{prompt_id}", json=self._body(body))

    async def delete_prompt(self, prompt_id: str) -> PromptSummary:
        return await self._fetch(PromptSummary, "DELETE", f"/api/prompts/{prompt_id}")

    async def snapshot_prompt(self, prompt_id: str, notes: Optional[str] = None) -> PromptDetail:
        return await self._fetch(PromptDetail, "POST", f"/api/prompts/{prompt_id}/snapshots", json={"notes": notes})

    async def restore_version(self, prompt_id: str, version_id: str) -> PromptDetail:
        return await self._fetch(
            PromptDetail, "POST", f"/api/prompts/{prompt_id}/restore", json={"versionId": version_id}
        )

    async def resolve_variable(self, source: Union[VariableSource, dict], project_id: Optional[str] = None) -> str:
        """Preview one variable source; accepts a source model or its camelCase dict."""
        request = ResolveVariableRequest(source=source, project_id=project_id)
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        resolved = await self._fetch(ResolveVariableResponse, "POST", "/api/variables/resolve", json=payload)
        return resolved.value
