"""Live variable source descriptors.

A VariableSource says *how* a variable's value is computed from project data.
It is a tagged union on ``type``; each case carries only the fields it uses.
"""
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import Field
from promptlab.schemas.base import CamelModel

Aggregation = Literal["COUNT", "LIST_TITLES", "LIST_NAMES"]
ListFormat = Literal["COMMA_SEPARATED", "BULLET_POINTS"]


class UserFieldSource(CamelModel):
    type: Literal["USER_FIELD"] = "USER_FIELD"
    field: str


class DateFunctionSource(CamelModel):
    type: Literal["DATE_FUNCTION"] = "DATE_FUNCTION"
    field: str = "today"


class ProjectFieldSource(CamelModel):
    type: Literal["PROJECT_FIELD"] = "PROJECT_FIELD"
    field: str


class WorkspaceFieldSource(CamelModel):
    type: Literal["WORKSPACE_FIELD"] = "WORKSPACE_FIELD"
    field: str


class SingleTaskFieldSource(CamelModel):
    type: Literal["SINGLE_TASK_FIELD"] = "SINGLE_TASK_FIELD"
    field: str
    entity_id: Optional[str] = None  # task id, or "latest"/None for the default pick


class SprintFieldSource(CamelModel):
    type: Literal["SPRINT_FIELD"] = "SPRINT_FIELD"
    field: str
    entity_id: Optional[str] = None  # sprint id, "current_sprint", or "latest"/None


class DocumentFieldSource(CamelModel):
    type: Literal["DOCUMENT_FIELD"] = "DOCUMENT_FIELD"
    field: str
    entity_id: Optional[str] = None  # document id, or "latest"/None


class TasksAggregationSource(CamelModel):
    type: Literal["TASKS_AGGREGATION"] = "TASKS_AGGREGATION"
    aggregation: Aggregation
    filter: Optional[dict[str, Any]] = None
    format: ListFormat = "COMMA_SEPARATED"


class SprintAggregationSource(CamelModel):
    type: Literal["SPRINT_AGGREGATION"] = "SPRINT_AGGREGATION"
    aggregation: Aggregation
    filter: Optional[dict[str, Any]] = None
    format: ListFormat = "COMMA_SEPARATED"


class DocumentAggregationSource(CamelModel):
    type: Literal["DOCUMENT_AGGREGATION"] = "DOCUMENT_AGGREGATION"
    aggregation: Aggregation
    filter: Optional[dict[str, Any]] = None
    format: ListFormat = "COMMA_SEPARATED"


class MemberListSource(CamelModel):
    type: Literal["MEMBER_LIST"] = "MEMBER_LIST"
    aggregation: Aggregation = "LIST_NAMES"
    filter: Optional[dict[str, Any]] = None
    format: ListFormat = "COMMA_SEPARATED"


VariableSource = Annotated[
    Union[
        UserFieldSource,
        DateFunctionSource,
        ProjectFieldSource,
        WorkspaceFieldSource,
        SingleTaskFieldSource,
        SprintFieldSource,
        DocumentFieldSource,
        TasksAggregationSource,
        SprintAggregationSource,
        DocumentAggregationSource,
        MemberListSource,
    ],
    Field(discriminator="type"),
]
