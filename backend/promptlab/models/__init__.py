"""Import all models so SQLAlchemy metadata knows about them."""
from promptlab.models.base import Base
from promptlab.models.prompt import Prompt
from promptlab.models.project_data import (
    User, Workspace, Project, ProjectMember, Task, Sprint, Document,
)

__all__ = [
    "Base", "Prompt",
    "User", "Workspace", "Project", "ProjectMember", "Task", "Sprint", "Document",
]
