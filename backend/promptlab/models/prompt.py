"""Prompt model - templated text with live variables and snapshot history."""
import uuid
from sqlalchemy import String, Text, Boolean, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from promptlab.models.base import Base, TimestampMixin


class Prompt(Base, TimestampMixin):
    __tablename__ = "prompts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(100), default="")
    tags: Mapped[list] = mapped_column(JSON, default=list)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)

    # Ownership: project_id set -> project prompt, else personal prompt of user_id.
    # user_id is always the creator.
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    project_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Editable state (what a Version snapshots)
    content: Mapped[list] = mapped_column(JSON, default=list)  # ContentBlock dicts
    context: Mapped[str] = mapped_column(Text, default="")
    variables: Mapped[list] = mapped_column(JSON, default=list)  # PromptVariable dicts

    # Append-only, newest first
    versions: Mapped[list] = mapped_column(JSON, default=list)

    __table_args__ = (
        Index("idx_prompts_project", "project_id", "updated_at"),
        Index("idx_prompts_user", "user_id", "project_id", "updated_at"),
    )
