"""Compose a prompt's content blocks into final text."""
import logging
from typing import Iterable, Optional

from promptlab.schemas.prompt import ContentBlock, PromptVariable
from promptlab.services.variable_resolver import (
    ResolutionContext,
    VariableSourceResolver,
    is_sentinel,
)

logger = logging.getLogger(__name__)


class ContentComposer:
    """Concatenates TEXT blocks and resolved VARIABLE blocks in `order`.

    Blocks sharing an order value keep their stored relative order. A
    variable referenced more than once is resolved once per render.
    """

    def __init__(self, resolver: VariableSourceResolver):
        self.resolver = resolver

    async def render(
        self,
        content: Iterable[ContentBlock],
        variables: Iterable[PromptVariable],
        ctx: ResolutionContext,
    ) -> str:
        by_id = {v.id: v for v in variables if v.id}
        resolved: dict[str, str] = {}
        parts: list[str] = []

        for block in sorted(content, key=lambda b: b.order):
            if block.type == "TEXT":
                parts.append(block.value or "")
                continue

            variable = by_id.get(block.var_id)
            if variable is None:
                logger.warning(f"Content block references unknown variable {block.var_id}")
                parts.append(self._dangling(block))
                continue
            if variable.id not in resolved:
                resolved[variable.id] = await self._value_for(variable, ctx)
            parts.append(resolved[variable.id])

        return "".join(parts)

    async def _value_for(self, variable: PromptVariable, ctx: ResolutionContext) -> str:
        if variable.source is None:
            return variable.default_value or variable.placeholder
        value = await self.resolver.resolve(variable.source, ctx)
        if is_sentinel(value):
            return variable.default_value or value or variable.placeholder
        return value

    @staticmethod
    def _dangling(block: ContentBlock) -> str:
        placeholder: Optional[str] = block.placeholder
        if placeholder:
            return placeholder
        return "{{" + (block.name or block.var_id) + "}}"
