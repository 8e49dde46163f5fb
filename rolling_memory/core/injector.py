"""ContextInjector: turn the rolling memory into prompt text and prune old messages."""

from __future__ import annotations

import logging

from ..types import HostAdapter, MemorySettings, MemoryState, MemoryStatus, Message

logger = logging.getLogger(__name__)

MEMORY_HEADER = "[Story memory: summary of earlier events]"
MEMORY_FOOTER = "[End of memory]"


class ContextInjector:
    """Build the injected memory block and manage message exclusion flags.

    Pruning policy (``settings.pruning_scope``):
    - ``prompt``: pruned messages get the host's exclusion flag, so they
      leave the whole outgoing prompt.
    - ``display``: nothing on the host is touched; the would-be-pruned
      indices are only reported, for a presentation layer to mark.
    """

    def __init__(self, host: HostAdapter | None = None) -> None:
        self.host = host

    @staticmethod
    def build_injection_block(
        settings: MemorySettings,
        memory: MemoryState,
        message_count: int | None = None,
    ) -> str:
        """Memory block text, or "" when there is nothing to inject yet.

        When *message_count* is given, chats shorter than
        ``settings.start_injecting_after`` get no block.
        """
        if not settings.enabled or not memory.summary:
            return ""
        if message_count is not None and message_count < settings.start_injecting_after:
            return ""
        return f"{MEMORY_HEADER}\n{memory.summary}\n{MEMORY_FOOTER}"

    def inject(
        self,
        settings: MemorySettings,
        memory: MemoryState,
        message_count: int | None = None,
    ) -> str:
        """Push the current block to the host. Returns the injected text."""
        text = self.build_injection_block(settings, memory, message_count)
        if self.host is not None:
            self.host.set_injection(
                settings.injection_key, text, settings.injection_depth, settings.injection_role,
            )
        return text

    @staticmethod
    def prune_limit(settings: MemorySettings, memory: MemoryState) -> int:
        return max(0, memory.last_index - settings.pruning_buffer)

    def apply_pruning(
        self,
        settings: MemorySettings,
        memory: MemoryState,
        messages: list[Message],
    ) -> list[int]:
        """Exclude every message below the prune limit. Never un-excludes.

        Returns the indices newly pruned by this call.
        """
        if not settings.pruning_enabled:
            return []

        limit = self.prune_limit(settings, memory)
        candidates = [m for m in messages if m.index < limit and not m.excluded_from_context]

        if settings.pruning_scope == "display":
            return [m.index for m in candidates]

        already = set(memory.pruned)
        newly: list[int] = []
        for m in candidates:
            m.excluded_from_context = True
            if self.host is not None:
                self.host.set_excluded(memory.conversation_id, m.index, True)
            if m.index not in already:
                memory.pruned.append(m.index)
            newly.append(m.index)

        if newly:
            logger.debug(
                "Conversation %s: pruned %d messages below index %d",
                memory.conversation_id, len(newly), limit,
            )
        return newly

    def reset_pruning(self, memory: MemoryState, messages: list[Message]) -> int:
        """Clear only the exclusion flags this injector set. Returns count cleared."""
        ours = set(memory.pruned)
        cleared = 0
        for m in messages:
            if m.index in ours and m.excluded_from_context:
                m.excluded_from_context = False
                if self.host is not None:
                    self.host.set_excluded(memory.conversation_id, m.index, False)
                cleared += 1
        memory.pruned = []
        return cleared

    def render_status(
        self,
        settings: MemorySettings,
        memory: MemoryState,
        messages: list[Message],
    ) -> MemoryStatus:
        total = len(messages)
        if settings.pruning_enabled and settings.pruning_scope == "display":
            limit = self.prune_limit(settings, memory)
            out_of_context = sum(
                1 for m in messages if m.index < limit and not m.excluded_from_context
            )
        else:
            # Only flags this injector set; host exclusions are not ours to report
            ours = set(memory.pruned)
            out_of_context = sum(
                1 for m in messages if m.index in ours and m.excluded_from_context
            )
        return MemoryStatus(
            visible=settings.show_visuals and settings.enabled and bool(memory.summary),
            summary=memory.summary,
            pending=total - min(memory.last_index, total),
            last_index=memory.last_index,
            pruned_count=out_of_context,
            last_error=memory.last_error,
            updated_at=memory.updated_at,
        )
