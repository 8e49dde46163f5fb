"""InMemoryStore: process-local backend for tests and headless hosts."""

from __future__ import annotations

import copy

from ..core.store import MemoryStore
from ..types import MemoryState


class InMemoryStore(MemoryStore):
    """Keeps deep copies so callers can't mutate stored records by reference."""

    def __init__(self) -> None:
        self._memories: dict[str, MemoryState] = {}
        self._settings: dict | None = None

    def load_memory(self, conversation_id: str) -> MemoryState | None:
        state = self._memories.get(conversation_id)
        return copy.deepcopy(state) if state is not None else None

    def save_memory(self, state: MemoryState) -> None:
        self._memories[state.conversation_id] = copy.deepcopy(state)

    def delete_memory(self, conversation_id: str) -> bool:
        return self._memories.pop(conversation_id, None) is not None

    def list_conversations(self) -> list[str]:
        return sorted(self._memories)

    def load_settings(self) -> dict | None:
        return copy.deepcopy(self._settings)

    def save_settings(self, settings: dict) -> None:
        self._settings = copy.deepcopy(settings)
