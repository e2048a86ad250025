"""Client-side prompt cache: list rows, the selected prompt's detail, and
optimistic mutations layered on top of both.

Confirmed state only ever holds what the server returned. Pending mutations
are kept as overlays and replayed over confirmed state whenever a view is
read, so dropping an overlay is all a rollback needs.
"""
import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from promptlab.client.cache import combine, merge_list_rows, sort_rows
from promptlab.client.repository import PromptRepository
from promptlab.errors import NotFoundError, PromptLabError
from promptlab.schemas.common import OwnerScope
from promptlab.schemas.prompt import (
    DEFAULT_PROMPT_TITLE,
    PromptCreate,
    PromptDetail,
    PromptUpdate,
    Version,
    default_snapshot_notes,
)

logger = logging.getLogger(__name__)

# Finished mutations kept in `PromptCacheReconciler.mutations`
MUTATION_HISTORY = 50


class SelectionState(str, Enum):
    DESELECTED = "deselected"
    DETAIL_LOADING = "detail_loading"
    DETAIL_READY = "detail_ready"


class MutationState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PendingMutation:
    """One mutation's lifecycle: IDLE -> PENDING -> COMMITTED | ROLLED_BACK.

    `apply` is the optimistic patch; returning None hides the prompt.
    """
    kind: str
    prompt_id: Optional[str] = None
    apply: Optional[Callable[[PromptDetail], Optional[PromptDetail]]] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: MutationState = MutationState.IDLE
    result: Any = None
    error: Optional[Exception] = None

    def _move(self, expected: MutationState, target: MutationState) -> None:
        if self.state is not expected:
            raise RuntimeError(f"{self.kind} mutation is {self.state.value}, cannot become {target.value}")
        self.state = target

    def begin(self) -> None:
        self._move(MutationState.IDLE, MutationState.PENDING)

    def commit(self, result: Any) -> None:
        self._move(MutationState.PENDING, MutationState.COMMITTED)
        self.result = result

    def roll_back(self, error: Exception) -> None:
        self._move(MutationState.PENDING, MutationState.ROLLED_BACK)
        self.error = error

    @property
    def committed(self) -> bool:
        return self.state is MutationState.COMMITTED


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PromptCacheReconciler:
    """Keeps list rows and the selected prompt's detail consistent with the
    server across selection changes, list refreshes and mutations.

    Responses are stamped at dispatch. A detail response is applied only if
    the same prompt is still selected under the same stamp, and a list
    response only if no newer list response has been applied already.
    A full prompt older than the confirmed one is never applied.
    Mutations never raise for server failures: the failure is recorded in
    `last_error`, the optimistic patch is dropped and the authoritative state
    is refetched. Any other error drops the patch and refetches too, then
    propagates.
    """

    def __init__(
        self,
        repository: PromptRepository,
        scope: Optional[OwnerScope] = None,
        page_size: Optional[int] = None,
        query: Optional[str] = None,
    ):
        self.repository = repository
        self.scope = scope or OwnerScope.personal()
        self.page_size = page_size
        self.query = query
        self.total_count = 0
        self.last_error: Optional[PromptLabError] = None
        self.mutations: list[PendingMutation] = []

        self._rows: list[PromptDetail] = []
        self._details: dict[str, PromptDetail] = {}
        self._pending: list[PendingMutation] = []
        # Forgotten prompt id -> last list stamp dispatched before it was forgotten
        self._deleted: dict[str, int] = {}

        self._state = SelectionState.DESELECTED
        self._selected_id: Optional[str] = None
        self._selection_stamp = 0
        self._list_stamp = 0
        self._applied_list_stamp = 0

    # ── Views ────────────────────────────────────────────────────

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def rows(self) -> list[PromptDetail]:
        """List rows with pending mutations applied."""
        views = (self._overlay(row) for row in self._rows)
        return sort_rows(v for v in views if v is not None)

    @property
    def detail(self) -> Optional[PromptDetail]:
        """The selected prompt with pending mutations applied, once loaded."""
        confirmed = self._confirmed_detail()
        return self._overlay(confirmed) if confirmed is not None else None

    @property
    def pending(self) -> list[PendingMutation]:
        return list(self._pending)

    @property
    def has_more(self) -> bool:
        return len(self._rows) < self.total_count

    def clear_error(self) -> None:
        self.last_error = None

    def _confirmed_detail(self) -> Optional[PromptDetail]:
        if self._state is not SelectionState.DETAIL_READY:
            return None
        return self._details.get(self._selected_id)

    def _overlay(self, prompt: Optional[PromptDetail]) -> Optional[PromptDetail]:
        for mutation in self._pending:
            if prompt is None:
                break
            if mutation.apply is not None and mutation.prompt_id == prompt.id:
                prompt = mutation.apply(prompt)
        return prompt

    # ── Selection ────────────────────────────────────────────────

    async def select(self, prompt_id: str) -> None:
        """Select a prompt and fetch its detail. Always refetches."""
        self._selection_stamp += 1
        self._selected_id = prompt_id
        self._state = SelectionState.DETAIL_LOADING
        await self._load_detail(prompt_id, self._selection_stamp)

    def deselect(self) -> None:
        self._selection_stamp += 1
        self._selected_id = None
        self._state = SelectionState.DESELECTED

    def _is_current(self, prompt_id: str, stamp: int) -> bool:
        return stamp == self._selection_stamp and self._selected_id == prompt_id

    async def _load_detail(self, prompt_id: str, stamp: int) -> None:
        try:
            detail = await self.repository.get_prompt(prompt_id)
        except PromptLabError as e:
            if not self._is_current(prompt_id, stamp):
                logger.info(f"Ignoring failed detail fetch for {prompt_id}: selection moved on")
                return
            self._record_error("load detail", e)
            if isinstance(e, NotFoundError):
                self._forget(prompt_id)
            elif self._state is SelectionState.DETAIL_LOADING:
                self.deselect()
            return
        except Exception:
            if self._is_current(prompt_id, stamp) and self._state is SelectionState.DETAIL_LOADING:
                self.deselect()
            raise

        if not self._is_current(prompt_id, stamp):
            logger.info(f"Discarding stale detail response for {prompt_id}")
            return
        self._accept(detail)
        self._state = SelectionState.DETAIL_READY

    # ── List ─────────────────────────────────────────────────────

    async def refresh_list(self) -> None:
        """Reload the first page, dropping rows the server no longer lists."""
        await self._load_page(skip=0, append=False)

    async def load_more(self) -> None:
        """Append the next page."""
        if not self.has_more:
            return
        await self._load_page(skip=len(self._rows), append=True)

    async def _load_page(self, skip: int, append: bool) -> None:
        self._list_stamp += 1
        stamp = self._list_stamp
        try:
            page = await self.repository.list_prompts(self.scope, skip=skip, take=self.page_size, q=self.query)
        except PromptLabError as e:
            self._record_error("load list", e)
            return

        if stamp < self._applied_list_stamp:
            logger.info(f"Discarding stale list response (stamp {stamp} < {self._applied_list_stamp})")
            return
        self._applied_list_stamp = stamp

        # A list dispatched after a prompt was forgotten cannot carry it any more
        self._deleted = {pid: before for pid, before in self._deleted.items() if before >= stamp}
        incoming = [row for row in page.prompts if row.id not in self._deleted]
        self._rows = merge_list_rows(
            self._rows,
            incoming,
            selected_id=self._selected_id,
            detail=self._confirmed_detail(),
            keep_absent=append,
        )
        self.total_count = page.total_count

    # ── Confirmed state ──────────────────────────────────────────

    def _accept(self, prompt: PromptDetail) -> None:
        """Store a full prompt returned by the server as confirmed state.

        Responses can arrive in any order, so a payload older than the
        confirmed detail is dropped. A list row that is newer than the payload
        keeps its own summary fields.
        """
        known = self._details.get(prompt.id)
        if known is not None and prompt.updated_at < known.updated_at:
            logger.info(
                f"Discarding out-of-date payload for {prompt.id} "
                f"({prompt.updated_at.isoformat()} < {known.updated_at.isoformat()})"
            )
            return
        self._details[prompt.id] = prompt
        row = next((r for r in self._rows if r.id == prompt.id), None)
        cheap = row if row is not None and row.updated_at > prompt.updated_at else prompt
        others = [r for r in self._rows if r.id != prompt.id]
        self._rows = sort_rows([*others, combine(cheap, prompt)])

    def _forget(self, prompt_id: str) -> None:
        self._deleted[prompt_id] = self._list_stamp
        self._details.pop(prompt_id, None)
        self._rows = [row for row in self._rows if row.id != prompt_id]
        if self._selected_id == prompt_id:
            self.deselect()

    def _record_error(self, action: str, error: PromptLabError) -> None:
        self.last_error = error
        logger.warning(f"Failed to {action}: {error}")

    # ── Mutations ────────────────────────────────────────────────

    async def _run(
        self,
        mutation: PendingMutation,
        call: Callable[[], Awaitable[Any]],
        on_commit: Callable[[Any], None],
    ) -> PendingMutation:
        mutation.begin()
        self.mutations.append(mutation)
        del self.mutations[:-MUTATION_HISTORY]
        if mutation.apply is not None:
            self._pending.append(mutation)
        try:
            result = await call()
        except PromptLabError as e:
            self._roll_back(mutation, e)
            self._record_error(mutation.kind, e)
            await self._reconcile()
            return mutation
        except Exception as e:
            # Not a server verdict, so it propagates; the overlay still goes
            self._roll_back(mutation, e)
            logger.exception(f"Unexpected error during {mutation.kind} of {mutation.prompt_id}")
            await self._reconcile()
            raise

        # Confirmed state replaces the overlay in one step
        on_commit(result)
        self._drop_pending(mutation)
        mutation.commit(result)
        return mutation

    def _roll_back(self, mutation: PendingMutation, error: Exception) -> None:
        self._drop_pending(mutation)
        mutation.roll_back(error)
        logger.info(f"Rolled back {mutation.kind} of {mutation.prompt_id}; refetching")

    def _drop_pending(self, mutation: PendingMutation) -> None:
        if mutation in self._pending:
            self._pending.remove(mutation)

    async def _reconcile(self) -> None:
        if self._selected_id is not None:
            await self._load_detail(self._selected_id, self._selection_stamp)
        else:
            await self.refresh_list()

    async def create(self, **fields) -> PendingMutation:
        """Create a prompt in this reconciler's scope.

        Not optimistic: the row appears once the server assigns an id.
        """
        fields.setdefault("title", DEFAULT_PROMPT_TITLE)
        if not self.scope.is_personal:
            fields.setdefault("project_id", self.scope.project_id)
        body = PromptCreate(**fields)

        def on_commit(created: PromptDetail) -> None:
            self._accept(created)
            self.total_count += 1

        mutation = PendingMutation(kind="create")
        return await self._run(mutation, lambda: self.repository.create_prompt(body), on_commit)

    async def update(self, prompt_id: str, **changes) -> PendingMutation:
        body = PromptUpdate(**changes)
        patch = {name: getattr(body, name) for name in body.model_fields_set if getattr(body, name) is not None}
        stamp = _now()

        def apply(prompt: PromptDetail) -> PromptDetail:
            return prompt.model_copy(update={**patch, "updated_at": stamp})

        mutation = PendingMutation(kind="update", prompt_id=prompt_id, apply=apply)
        return await self._run(mutation, lambda: self.repository.update_prompt(prompt_id, body), self._accept)

    async def delete(self, prompt_id: str) -> PendingMutation:
        """Delete a prompt. Deleting the selected prompt deselects it and
        discards its remembered detail straight away."""
        if self._selected_id == prompt_id:
            self.deselect()
            self._details.pop(prompt_id, None)

        def on_commit(_deleted) -> None:
            self._forget(prompt_id)
            self.total_count = max(0, self.total_count - 1)

        mutation = PendingMutation(kind="delete", prompt_id=prompt_id, apply=lambda prompt: None)
        return await self._run(mutation, lambda: self.repository.delete_prompt(prompt_id), on_commit)

    async def snapshot(self, prompt_id: str, notes: Optional[str] = None) -> PendingMutation:
        stamp = _now()
        mutation = PendingMutation(kind="snapshot", prompt_id=prompt_id)

        def apply(prompt: PromptDetail) -> PromptDetail:
            provisional = Version(
                id=f"pending-{mutation.id}",
                content=copy.deepcopy(prompt.content),
                context=prompt.context,
                variables=copy.deepcopy(prompt.variables),
                created_at=stamp,
                notes=notes or default_snapshot_notes(stamp),
            )
            return prompt.model_copy(update={"versions": [provisional, *prompt.versions], "updated_at": stamp})

        mutation.apply = apply
        return await self._run(mutation, lambda: self.repository.snapshot_prompt(prompt_id, notes), self._accept)

    async def restore(self, prompt_id: str, version_id: str) -> PendingMutation:
        stamp = _now()

        def apply(prompt: PromptDetail) -> PromptDetail:
            version = next((v for v in prompt.versions if v.id == version_id), None)
            if version is None:
                return prompt
            return prompt.model_copy(update={
                "content": copy.deepcopy(version.content),
                "context": version.context,
                "variables": copy.deepcopy(version.variables),
                "updated_at": stamp,
            })

        mutation = PendingMutation(kind="restore", prompt_id=prompt_id, apply=apply)
        return await self._run(
            mutation, lambda: self.repository.restore_version(prompt_id, version_id), self._accept
        )
