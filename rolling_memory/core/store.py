"""MemoryStore: abstract per-conversation memory persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..types import MemoryState


class MemoryStore(ABC):
    """Pluggable storage backend for MemoryState records and settings."""

    @abstractmethod
    def load_memory(self, conversation_id: str) -> MemoryState | None:
        """Load a conversation's memory. None if never saved."""

    @abstractmethod
    def save_memory(self, state: MemoryState) -> None:
        """Store a memory record. Upsert on conversation_id."""

    @abstractmethod
    def delete_memory(self, conversation_id: str) -> bool:
        """Delete a conversation's memory. Returns True if deleted."""

    @abstractmethod
    def list_conversations(self) -> list[str]:
        """Return conversation ids with a stored memory, sorted."""

    @abstractmethod
    def load_settings(self) -> dict | None:
        """Load the raw settings dict. None if never saved."""

    @abstractmethod
    def save_settings(self, settings: dict) -> None:
        """Replace the stored settings dict."""
