# ruff: noqa: S101
from __future__ import annotations

import pytest
from aiohttp import web
from aiohttp import test_utils

from promptlab.client.api import PromptApiClient, PromptApiError
from promptlab.errors import BadInputError, ForbiddenError, NotFoundError
from promptlab.schemas.common import OwnerScope
from promptlab.schemas.prompt import PromptUpdate
from promptlab.schemas.variable_source import SprintFieldSource

ROW = {
    "id": "p1",
    "title": "Standup",
    "model": "gpt-4o",
    "userId": "u-alice",
    "projectId": "proj",
    "createdAt": "2026-01-01T00:00:00Z",
    "updatedAt": "2026-01-02T00:00:00",
}


def _app(seen: list) -> web.Application:
    async def list_prompts(request: web.Request) -> web.Response:
        seen.append((request.headers.get("X-User-Id"), dict(request.query)))
        return web.json_response({"prompts": [ROW], "totalCount": 1})

    async def get_prompt(request: web.Request) -> web.Response:
        pid = request.match_info["pid"]
        if pid == "forbidden":
            return web.json_response({"detail": "Not a member of this project", "code": "FORBIDDEN"}, status=403)
        if pid == "garbled":
            return web.json_response({"id": pid})
        if pid == "broken":
            return web.Response(text="upstream exploded", status=502)
        return web.json_response({"detail": "Prompt not found", "code": "NOT_FOUND"}, status=404)

    async def patch_prompt(request: web.Request) -> web.Response:
        seen.append(await request.json())
        return web.json_response({"detail": [{"msg": "bad"}]}, status=422)

    async def get_version(request: web.Request) -> web.Response:
        return web.json_response({
            "id": request.match_info["vid"],
            "content": [{"order": 0, "type": "TEXT", "value": "original"}],
            "createdAt": "2026-01-03T10:00:00Z",
            "notes": "v1",
        })

    async def render(request: web.Request) -> web.Response:
        return web.json_response({"text": "Summary: 3"})

    async def resolve(request: web.Request) -> web.Response:
        seen.append(await request.json())
        return web.json_response({"value": "Launch beta"})

    app = web.Application()
    app.router.add_get("/api/prompts", list_prompts)
    app.router.add_get("/api/prompts/{pid}", get_prompt)
    app.router.add_patch("/api/prompts/{pid}", patch_prompt)
    app.router.add_get("/api/prompts/{pid}/versions/{vid}", get_version)
    app.router.add_get("/api/prompts/{pid}/render", render)
    app.router.add_post("/api/variables/resolve", resolve)
    return app


@pytest.fixture
async def server():
    seen: list = []
    test_server = test_utils.TestServer(_app(seen))
    await test_server.start_server()
    test_server.seen = seen
    yield test_server
    await test_server.close()


async def test_list_sends_identity_and_scope(server) -> None:
    base = str(server.make_url("")).rstrip("/")
    async with PromptApiClient("u-alice", base_url=base) as api:
        page = await api.list_prompts(OwnerScope.project("proj"), skip=0, take=5)

    assert page.total_count == 1
    assert page.prompts[0].updated_at.tzinfo is not None
    user, query = server.seen[0]
    assert user == "u-alice"
    assert query == {"projectId": "proj", "skip": "0", "take": "5"}


async def test_statuses_map_to_domain_errors(server) -> None:
    base = str(server.make_url("")).rstrip("/")
    api = PromptApiClient("u-alice", base_url=base)

    with pytest.raises(ForbiddenError, match="Not a member"):
        await api.get_prompt("forbidden")
    with pytest.raises(NotFoundError):
        await api.get_prompt("missing")
    with pytest.raises(PromptApiError) as excinfo:
        await api.get_prompt("broken")
    assert excinfo.value.status == 502
    with pytest.raises(BadInputError):
        await api.update_prompt("p1", PromptUpdate(title="x"))


async def test_update_sends_only_fields_that_were_set(server) -> None:
    base = str(server.make_url("")).rstrip("/")
    async with PromptApiClient("u-alice", base_url=base) as api:
        with pytest.raises(BadInputError):
            await api.update_prompt("p1", PromptUpdate(title="Renamed", isPublic=True))
    assert server.seen[-1] == {"title": "Renamed", "isPublic": True}


async def test_connection_failure_becomes_api_error() -> None:
    api = PromptApiClient("u-alice", base_url="http://127.0.0.1:9", timeout=2)
    with pytest.raises(PromptApiError) as excinfo:
        await api.get_prompt("p1")
    assert excinfo.value.status == 0


async def test_version_preview_and_render(server) -> None:
    base = str(server.make_url("")).rstrip("/")
    async with PromptApiClient("u-alice", base_url=base) as api:
        version = await api.get_version("p1", "ver-1")
        text = await api.render_prompt("p1")

    assert version.id == "ver-1"
    assert version.content[0].value == "original"
    assert version.variables == []
    assert text == "Summary: 3"


async def test_resolve_variable_sends_camel_case_source(server) -> None:
    base = str(server.make_url("")).rstrip("/")
    async with PromptApiClient("u-alice", base_url=base) as api:
        from_model = await api.resolve_variable(
            SprintFieldSource(field="goal", entity_id="current_sprint"), project_id="proj"
        )
        from_dict = await api.resolve_variable({"type": "PROJECT_FIELD", "field": "name"})

    assert from_model == "Launch beta"
    assert from_dict == "Launch beta"
    assert server.seen[0] == {
        "source": {"type": "SPRINT_FIELD", "field": "goal", "entityId": "current_sprint"},
        "projectId": "proj",
    }
    assert server.seen[1] == {"source": {"type": "PROJECT_FIELD", "field": "name"}}


async def test_malformed_body_becomes_api_error(server) -> None:
    base = str(server.make_url("")).rstrip("/")
    api = PromptApiClient("u-alice", base_url=base)
    with pytest.raises(PromptApiError, match="Malformed PromptDetail") as excinfo:
        await api.get_prompt("garbled")
    assert excinfo.value.status == 502
