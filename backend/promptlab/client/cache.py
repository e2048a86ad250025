"""List/detail merge rule for the client prompt cache.

List rows carry only the cheap summary fields. The selected prompt's heavy
fields (content, context, variables, versions) come from its last detail
response and must survive any number of list refreshes.
"""
from typing import Iterable, Optional

from promptlab.schemas.prompt import HEAVY_FIELDS, PromptDetail, PromptSummary

CHEAP_FIELDS = tuple(PromptSummary.model_fields)


def combine(cheap: PromptSummary, heavy: Optional[PromptDetail] = None) -> PromptDetail:
    """A row with summary fields from `cheap` and heavy fields from `heavy`."""
    data = {name: getattr(cheap, name) for name in CHEAP_FIELDS}
    if heavy is not None:
        data.update({name: getattr(heavy, name) for name in HEAVY_FIELDS})
    return PromptDetail(**data)


def sort_rows(rows: Iterable[PromptDetail]) -> list[PromptDetail]:
    """Most recently updated first, ties by id."""
    ordered = sorted(rows, key=lambda r: r.id)
    ordered.sort(key=lambda r: r.updated_at, reverse=True)
    return ordered


def merge_list_rows(
    previous: list[PromptDetail],
    incoming: list[PromptSummary],
    selected_id: Optional[str] = None,
    detail: Optional[PromptDetail] = None,
    keep_absent: bool = False,
) -> list[PromptDetail]:
    """Fold a list response into the rows already held.

    - incoming rows overwrite cheap fields and keep whatever heavy fields the
      previous row with the same id had
    - the selected row takes its heavy fields from `detail`; its cheap fields
      still come from the response when the response carries it
    - the selected row is kept even when the response omits it
    - previous rows missing from the response are dropped unless
      `keep_absent` (used when appending a further page)
    """
    previous_by_id = {row.id: row for row in previous}
    merged: dict[str, PromptDetail] = {}
    if keep_absent:
        merged.update(previous_by_id)

    for summary in incoming:
        merged[summary.id] = combine(summary, previous_by_id.get(summary.id))

    if selected_id and detail is not None and detail.id == selected_id:
        merged[selected_id] = combine(merged.get(selected_id) or detail, detail)

    return sort_rows(merged.values())
