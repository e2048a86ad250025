# ruff: noqa: S101
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from promptlab.errors import NotFoundError
from promptlab.models.prompt import Prompt
from promptlab.schemas.prompt import PromptDetail
from promptlab.services.versioning import (
    ensure_variable_ids,
    restore_prompt_version,
    snapshot_prompt,
)

T0 = datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc)


def _prompt() -> Prompt:
    return Prompt(
        id="pr-1",
        title="Standup",
        description="",
        category="",
        tags=[],
        is_public=False,
        model="gpt-4o",
        user_id="u-alice",
        content=[
            {"order": 0, "type": "TEXT", "value": "Hello "},
            {"order": 1, "type": "VARIABLE", "var_id": "v1"},
        ],
        context="daily",
        variables=[{"id": "v1", "name": "Name", "placeholder": "{{name}}"}],
        versions=[],
        created_at=T0,
        updated_at=T0,
    )


def _edit(prompt: Prompt, value: str) -> None:
    prompt.content = [{"order": 0, "type": "TEXT", "value": value}]


def test_snapshot_prepends_copy_and_keeps_live_state() -> None:
    prompt = _prompt()
    live_content = list(prompt.content)

    first = snapshot_prompt(prompt, "v1", now=T0 + timedelta(minutes=1))
    second = snapshot_prompt(prompt, None, now=T0 + timedelta(minutes=2))

    assert [v["id"] for v in prompt.versions] == [second["id"], first["id"]]
    assert first["notes"] == "v1"
    assert second["notes"] == "Version saved on 2026-02-01 08:02:00"
    assert prompt.content == live_content
    assert prompt.updated_at == T0 + timedelta(minutes=2)

    # Stored content is a copy, not the live list
    prompt.content[0]["value"] = "changed"
    assert first["content"][0]["value"] == "Hello "


def test_restore_brings_back_snapshot_content() -> None:
    prompt = _prompt()
    original = [dict(block) for block in prompt.content]
    version = snapshot_prompt(prompt, "v1", now=T0)
    _edit(prompt, "first edit")
    _edit(prompt, "second edit")

    restore_prompt_version(prompt, version["id"], now=T0 + timedelta(hours=1))

    assert prompt.content == original
    assert prompt.context == "daily"
    assert prompt.updated_at == T0 + timedelta(hours=1)
    assert len(prompt.versions) == 1


def test_snapshot_then_restore_is_identity() -> None:
    prompt = _prompt()
    before = PromptDetail.model_validate(prompt)
    version = snapshot_prompt(prompt, now=T0)
    restore_prompt_version(prompt, version["id"], now=T0)
    after = PromptDetail.model_validate(prompt)
    assert after.content == before.content
    assert after.context == before.context
    assert after.variables == before.variables


def test_versions_only_grow() -> None:
    prompt = _prompt()
    first = snapshot_prompt(prompt, now=T0)
    snapshot_prompt(prompt, now=T0)
    restore_prompt_version(prompt, first["id"])
    snapshot_prompt(prompt, now=T0)
    restore_prompt_version(prompt, first["id"])
    assert len(prompt.versions) == 3
    assert prompt.versions[-1]["id"] == first["id"]


def test_restore_unknown_version() -> None:
    prompt = _prompt()
    snapshot_prompt(prompt, now=T0)
    with pytest.raises(NotFoundError):
        restore_prompt_version(prompt, "no-such-version")


def test_missing_variable_ids_are_regenerated_deterministically() -> None:
    variables = [{"name": "Goal"}, {"id": "keep", "name": "Owner"}]
    once = ensure_variable_ids(variables, seed="ver-1")
    again = ensure_variable_ids(variables, seed="ver-1")
    assert once == again
    assert once[0]["id"] and once[1]["id"] == "keep"
    assert "id" not in variables[0]
    assert ensure_variable_ids(variables, seed="ver-2")[0]["id"] != once[0]["id"]
