"""Abstract prompt repository as seen from the client."""
from abc import ABC, abstractmethod
from typing import Optional

from promptlab.schemas.common import OwnerScope
from promptlab.schemas.prompt import (
    PromptCreate,
    PromptDetail,
    PromptPage,
    PromptSummary,
    PromptUpdate,
)


class PromptRepository(ABC):
    """Remote prompt operations. Implementations raise PromptLabError
    subclasses for every failure the caller should recover from."""

    @abstractmethod
    async def list_prompts(
        self, scope: OwnerScope, skip: int = 0, take: Optional[int] = None, q: Optional[str] = None
    ) -> PromptPage:
        ...

    @abstractmethod
    async def get_prompt(self, prompt_id: str) -> PromptDetail:
        ...

    @abstractmethod
    async def create_prompt(self, body: PromptCreate) -> PromptDetail:
        ...

    @abstractmethod
    async def update_prompt(self, prompt_id: str, body: PromptUpdate) -> PromptDetail:
        ...

    @abstractmethod
    async def delete_prompt(self, prompt_id: str) -> PromptSummary:
        ...

    @abstractmethod
    async def snapshot_prompt(self, prompt_id: str, notes: Optional[str] = None) -> PromptDetail:
        ...

    @abstractmethod
    async def restore_version(self, prompt_id: str, version_id: str) -> PromptDetail:
        ...
