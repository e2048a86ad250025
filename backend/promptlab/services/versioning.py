"""Snapshot and restore of a prompt's editable state.

A prompt's versions list is append-only and newest-first. Snapshots and
restores always store copies; a Version never aliases the live content.
Stored JSON is the snake_case dump of the pydantic schemas.
"""
import copy
import logging
import uuid
from datetime import datetime
from typing import Optional

from promptlab.errors import NotFoundError
from promptlab.models.base import utcnow
from promptlab.models.prompt import Prompt
from promptlab.schemas.prompt import default_snapshot_notes

logger = logging.getLogger(__name__)

# Namespace for ids minted for variables stored without one
VARIABLE_ID_NAMESPACE = uuid.UUID("8f7a3c52-7d0e-4b8e-9a51-2f4c1e6b9d30")


def ensure_variable_ids(variables: list[dict], seed: str) -> list[dict]:
    """Fill in missing variable ids, deterministically for a given seed."""
    result = []
    for index, variable in enumerate(variables):
        if not variable.get("id"):
            minted = uuid.uuid5(VARIABLE_ID_NAMESPACE, f"{seed}:{index}:{variable.get('name', '')}")
            variable = {**variable, "id": str(minted)}
        result.append(variable)
    return result


def find_version(prompt: Prompt, version_id: str) -> dict:
    for version in prompt.versions or []:
        if version.get("id") == version_id:
            return version
    raise NotFoundError("Version not found")


def snapshot_prompt(prompt: Prompt, notes: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """Prepend a copy of the live content/context/variables as a new Version.

    Live state is left untouched apart from the updated_at bump. Repeated
    calls create distinct versions.
    """
    now = now or utcnow()
    version_id = str(uuid.uuid4())
    version = {
        "id": version_id,
        "content": copy.deepcopy(prompt.content or []),
        "context": prompt.context or "",
        "variables": ensure_variable_ids(copy.deepcopy(prompt.variables or []), seed=version_id),
        "ai_enhanced_content": None,
        "created_at": now.isoformat(),
        "notes": notes if notes and notes.strip() else default_snapshot_notes(now),
    }
    # New list object so the JSON column is flagged dirty
    prompt.versions = [version, *(prompt.versions or [])]
    prompt.updated_at = now
    logger.info(f"Snapshot {version_id} taken for prompt {prompt.id}")
    return version


def restore_prompt_version(prompt: Prompt, version_id: str, now: Optional[datetime] = None) -> Prompt:
    """Overwrite live content/context/variables with a copy of one version.

    The versions list itself is neither reordered nor trimmed.
    """
    version = find_version(prompt, version_id)
    prompt.content = copy.deepcopy(version.get("content") or [])
    prompt.context = version.get("context") or ""
    prompt.variables = ensure_variable_ids(copy.deepcopy(version.get("variables") or []), seed=version_id)
    prompt.updated_at = now or utcnow()
    logger.info(f"Prompt {prompt.id} restored to version {version_id}")
    return prompt
