"""LocalHost: in-process reference host (message list, event bus, prompt injection).

This is the one place host-specific shapes live.  Real chat hosts implement
the same ``HostAdapter`` / ``EventBus`` surface in their own integration
layer; ``LocalHost`` backs headless use and the test suite.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

from .types import Message

logger = logging.getLogger(__name__)

EVENT_MESSAGE_ADDED = "message_added"
EVENT_CONVERSATION_CHANGED = "conversation_changed"
EVENT_GENERATION_STARTED = "generation_started"


@dataclass
class Injection:
    text: str
    depth: int
    role: str


class LocalHost:
    """Ordered per-conversation message lists plus a synchronous event bus."""

    def __init__(self, conversation_id: str | None = None) -> None:
        self._conversations: dict[str, list[Message]] = defaultdict(list)
        self._current: str | None = conversation_id
        self._handlers: dict[str, list[Callable[..., object]]] = defaultdict(list)
        self.injections: dict[str, Injection] = {}

    # -- EventBus --

    def on(self, event: str, handler: Callable[..., object]) -> None:
        self._handlers[event].append(handler)

    def emit(self, event: str, *args: object) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(*args)
            except Exception as e:
                logger.error("Handler for %s raised: %s", event, e)

    # -- HostAdapter --

    def current_conversation_id(self) -> str | None:
        return self._current

    def get_messages(self, conversation_id: str) -> list[Message]:
        return self._conversations[conversation_id]

    def set_excluded(self, conversation_id: str, index: int, excluded: bool) -> None:
        messages = self._conversations[conversation_id]
        if 0 <= index < len(messages):
            messages[index].excluded_from_context = excluded

    def set_injection(self, key: str, text: str, depth: int, role: str) -> None:
        if text:
            self.injections[key] = Injection(text=text, depth=depth, role=role)
        else:
            self.injections.pop(key, None)

    # -- host-side actions that raise events --

    def add_message(self, speaker: str, text: str, role: str = "character") -> Message:
        if self._current is None:
            raise RuntimeError("No active conversation")
        messages = self._conversations[self._current]
        message = Message(index=len(messages), speaker=speaker, text=text, role=role)
        messages.append(message)
        self.emit(EVENT_MESSAGE_ADDED, self._current)
        return message

    def switch_conversation(self, conversation_id: str) -> None:
        self._current = conversation_id
        self.emit(EVENT_CONVERSATION_CHANGED, conversation_id)

    def delete_last_message(self) -> None:
        if self._current is not None and self._conversations[self._current]:
            self._conversations[self._current].pop()

    def assemble_prompt(self) -> list[dict]:
        """Build the outgoing chat as role/content dicts.

        Excluded messages are dropped; each injection is spliced *depth*
        messages from the end.
        """
        self.emit(EVENT_GENERATION_STARTED, self._current)
        if self._current is None:
            return []
        chat = [
            {
                "role": "user" if m.is_user else ("system" if m.is_system else "assistant"),
                "content": f"{m.speaker}: {m.text}",
            }
            for m in self._conversations[self._current]
            if not m.excluded_from_context
        ]
        for injection in self.injections.values():
            position = max(0, len(chat) - max(0, injection.depth))
            chat.insert(position, {"role": injection.role, "content": injection.text})
        return chat
