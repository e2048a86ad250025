"""Shared Pydantic schemas."""
from typing import Optional
from promptlab.schemas.base import CamelModel


class OwnerScope(CamelModel):
    """Who a set of prompts belongs to: a project, or the caller personally."""
    project_id: Optional[str] = None

    @property
    def is_personal(self) -> bool:
        return self.project_id is None

    @classmethod
    def personal(cls) -> "OwnerScope":
        return cls()

    @classmethod
    def project(cls, project_id: str) -> "OwnerScope":
        return cls(project_id=project_id)
