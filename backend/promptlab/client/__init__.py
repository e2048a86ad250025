"""Client-side access to the prompt API and the cache that fronts it."""
from promptlab.client.api import PromptApiClient, PromptApiError
from promptlab.client.reconciler import MutationState, PromptCacheReconciler, SelectionState
from promptlab.client.repository import PromptRepository

__all__ = [
    "PromptApiClient",
    "PromptApiError",
    "PromptCacheReconciler",
    "PromptRepository",
    "MutationState",
    "SelectionState",
]
