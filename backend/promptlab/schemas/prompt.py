"""Prompt request/response schemas."""
import re
from datetime import datetime
from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from promptlab.schemas.base import CamelModel, CamelORMModel, UtcDatetime
from promptlab.schemas.variable_source import VariableSource

# Fields carried only by the detail projection of a prompt
HEAVY_FIELDS = ("content", "context", "variables", "versions")

DEFAULT_PROMPT_TITLE = "Untitled Prompt"


def default_snapshot_notes(now: datetime) -> str:
    return f"Version saved on {now:%Y-%m-%d %H:%M:%S}"


def make_placeholder(name: str) -> str:
    """'Sprint Goal' -> '{{sprint_goal}}'."""
    slug = re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")
    return "{{" + slug + "}}"


class ContentBlock(CamelModel):
    order: int
    type: Literal["TEXT", "VARIABLE"]
    value: Optional[str] = None
    var_id: Optional[str] = None
    # Display hints copied from the variable when the block was inserted
    name: Optional[str] = None
    placeholder: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "ContentBlock":
        if self.type == "TEXT" and self.value is None:
            self.value = ""
        if self.type == "VARIABLE" and not self.var_id:
            raise ValueError("VARIABLE blocks require varId")
        return self


class PromptVariable(CamelModel):
    id: Optional[str] = None  # assigned by the server when missing
    name: str
    placeholder: str = ""
    description: str = ""
    type: Literal["TEXT", "NUMBER", "DATE", "LIST"] = "TEXT"
    default_value: Optional[str] = None
    source: Optional[VariableSource] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("variable name must not be blank")
        return v.strip()

    @model_validator(mode="after")
    def _fill_placeholder(self) -> "PromptVariable":
        if not self.placeholder:
            self.placeholder = make_placeholder(self.name)
        return self


class Version(CamelModel):
    id: str
    content: list[ContentBlock] = []
    context: str = ""
    variables: list[PromptVariable] = []
    ai_enhanced_content: Optional[str] = None
    created_at: UtcDatetime
    notes: str = ""


def _dedupe_tags(tags: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for tag in tags:
        tag = tag.strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


class PromptCreate(CamelModel):
    title: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] = []
    is_public: bool = False
    model: Optional[str] = None
    project_id: Optional[str] = None
    content: list[ContentBlock] = []
    context: str = ""
    variables: list[PromptVariable] = []

    @field_validator("tags")
    @classmethod
    def _tags(cls, v: list[str]) -> list[str]:
        return _dedupe_tags(v)


class PromptUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    is_public: Optional[bool] = None
    model: Optional[str] = None
    content: Optional[list[ContentBlock]] = None
    context: Optional[str] = None
    variables: Optional[list[PromptVariable]] = None

    @field_validator("tags")
    @classmethod
    def _tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else _dedupe_tags(v)


class PromptSummary(CamelORMModel):
    """List projection: everything except the heavy fields."""
    id: str
    title: str
    description: str = ""
    category: str = ""
    tags: list[str] = []
    is_public: bool = False
    model: str
    user_id: str
    project_id: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class PromptDetail(PromptSummary):
    """Detail projection. List rows held by the client reuse this shape with
    the heavy fields left empty."""
    content: list[ContentBlock] = []
    context: str = ""
    variables: list[PromptVariable] = []
    versions: list[Version] = []

class PromptPage(CamelModel):
    prompts: list[PromptSummary]
    total_count: int


class SnapshotRequest(CamelModel):
    notes: Optional[str] = None


class RestoreRequest(CamelModel):
    version_id: str = Field(min_length=1)


class ResolveVariableRequest(CamelModel):
    source: VariableSource
    project_id: Optional[str] = None


class ResolveVariableResponse(CamelModel):
    value: str


class RenderResponse(CamelModel):
    text: str
