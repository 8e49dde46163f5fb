"""SummarizationEngine: fold new chat messages into the rolling memory via an LLM."""

from __future__ import annotations

import logging
import re
import threading
from datetime import datetime, timezone
from typing import Callable

from ..patterns import SECTION_LABEL_PATTERN
from ..types import (
    GenerationFailure,
    GenerationProvider,
    MemorySettings,
    MemoryState,
    Message,
    PromptRequest,
    SummaryReport,
    SummaryStatus,
)
from .cleaner import TextCleaner

logger = logging.getLogger(__name__)

NO_HISTORY_SENTINEL = "No history yet."

SUMMARIZER_SYSTEM = (
    "You are a story archivist. Reply with the updated memory text only. "
    "No headings, no commentary, no markdown."
)

_LABEL_RE = re.compile(SECTION_LABEL_PATTERN)
_THINK_RE = re.compile(r"(?is)<think(?:ing)?>.*?</think(?:ing)?>")
_QUOTE_PAIRS = {'"': '"', "'": "'", "“": "”", "‘": "’", "`": "`"}


class SingleFlight:
    """Per-key non-blocking locks: at most one holder per key at a time.

    Keys are conversation ids, so a slow cycle in one conversation never
    blocks another.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def try_acquire(self, key: str) -> bool:
        return self._lock_for(key).acquire(blocking=False)

    def release(self, key: str) -> None:
        self._lock_for(key).release()

    def is_busy(self, key: str) -> bool:
        return self._lock_for(key).locked()


def section_labels(template: str) -> list[str]:
    """Return the template's section label lines in order, e.g. ``NEW EVENTS:``."""
    return [m.group(1) for m in _LABEL_RE.finditer(template)]


def build_prompt(template: str, existing: str, new_lines: str) -> str:
    """Substitute both placeholders, or return *template* untouched if either is missing."""
    if "{{EXISTING}}" not in template or "{{NEW_LINES}}" not in template:
        logger.warning(
            "Prompt template lacks {{EXISTING}}/{{NEW_LINES}}; sending it literally"
        )
        return template
    return (
        template
        .replace("{{EXISTING}}", existing or NO_HISTORY_SENTINEL)
        .replace("{{NEW_LINES}}", new_lines)
    )


def clean_response(text: str, output_label: str | None = None) -> str:
    """Post-process raw model output into bare memory text. May return ""."""
    text = _THINK_RE.sub("", text or "").strip()

    if output_label:
        bare = output_label.strip("[]: ").lower()
        lowered = text.lower()
        for prefix in (output_label.lower(), bare + ":", f"[{bare}]"):
            if bare and lowered.startswith(prefix):
                text = text[len(prefix):].lstrip(" :\n\t")
                break

    if len(text) >= 2 and _QUOTE_PAIRS.get(text[0]) == text[-1]:
        inner = text[1:-1]
        # Only unwrap when the whole string is one quotation
        if text[0] not in inner and text[-1] not in inner:
            text = inner.strip()

    return text.strip()


class SummarizationEngine:
    """Decide when to summarize, build the merge prompt, call the provider,
    and commit the result to MemoryState only on confirmed success.

    ``last_index`` advances only when a non-empty summary is committed, so a
    failed cycle leaves the same pending window for the next trigger.
    """

    def __init__(
        self,
        provider: GenerationProvider | None,
        token_counter: Callable[[str], int] | None = None,
        locks: SingleFlight | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.provider = provider
        self.token_counter = token_counter or (lambda text: len(text) // 4)
        self.locks = locks or SingleFlight()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._cleaners: dict[tuple[str, ...] | None, TextCleaner] = {}

    def is_busy(self, conversation_id: str) -> bool:
        return self.locks.is_busy(conversation_id)

    def maybe_summarize(
        self,
        settings: MemorySettings,
        memory: MemoryState,
        messages: list[Message],
        force: bool = False,
    ) -> SummaryReport:
        """Run one cycle if enabled, idle, and enough messages are pending.

        *force* bypasses the threshold (manual "summarize now") but not the
        enabled flag, the single-flight lock, or an empty pending window.
        """
        conv_id = memory.conversation_id

        if not settings.enabled:
            return self._skipped(memory, "disabled")

        # The newest message_lag messages wait for a later cycle
        end = max(0, len(messages) - max(0, settings.message_lag))
        pending = max(0, end - memory.last_index)

        if pending <= 0:
            return self._skipped(memory, "nothing_pending")
        if pending < settings.threshold and not force:
            logger.debug(
                "Conversation %s: %d/%d pending, below threshold",
                conv_id, pending, settings.threshold,
            )
            return self._skipped(memory, "below_threshold", pending)
        if self.provider is None:
            logger.warning("No generation provider configured; cannot summarize")
            return self._skipped(memory, "no_provider", pending)

        if not self.locks.try_acquire(conv_id):
            logger.debug("Conversation %s: summarization already in flight", conv_id)
            return self._skipped(memory, "in_flight", pending)

        try:
            return self._run_cycle(settings, memory, messages[:end], pending)
        finally:
            self.locks.release(conv_id)

    def _run_cycle(
        self,
        settings: MemorySettings,
        memory: MemoryState,
        messages: list[Message],
        pending: int,
    ) -> SummaryReport:
        conv_id = memory.conversation_id
        # Captured before the call; a wipe or manual edit meanwhile bumps it
        start_revision = memory.revision
        new_last_index = len(messages)
        window = messages[min(memory.last_index, new_last_index):new_last_index]

        new_lines = self._format_lines(settings, window, set(memory.pruned))
        if not new_lines:
            logger.debug("Conversation %s: pending messages are all filtered out", conv_id)
            return self._skipped(memory, "nothing_pending", pending)

        template = settings.prompt_template
        labels = section_labels(template)
        output_label = labels[-1] if labels else None
        request = PromptRequest(
            prompt=build_prompt(template, memory.summary, new_lines),
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            # The output label itself is excluded so a leading restatement can be stripped
            stop_sequences=labels[:-1],
            system=SUMMARIZER_SYSTEM,
        )

        logger.info(
            "Summarizing conversation %s: %d new messages (%d..%d)",
            conv_id, len(window), new_last_index - len(window), new_last_index - 1,
        )

        try:
            raw = self.provider.generate(request)
        except Exception as e:
            if memory.revision != start_revision:
                return self._stale(memory, pending)
            return self._failed(memory, pending, f"generation call failed: {e}", e)

        # A wipe or edit during the call outranks both the result and its errors
        if memory.revision != start_revision:
            return self._stale(memory, pending)

        summary = clean_response(raw, output_label)
        if not summary:
            return self._failed(memory, pending, "generation returned an empty summary")

        memory.summary = summary
        memory.last_index = max(memory.last_index, new_last_index)
        memory.updated_at = self._clock()
        memory.revision += 1
        memory.last_error = ""

        tokens = self.token_counter(summary)
        logger.info(
            "Conversation %s: memory updated through message %d (%d tokens)",
            conv_id, memory.last_index, tokens,
        )
        return SummaryReport(
            status=SummaryStatus.SUMMARIZED,
            conversation_id=conv_id,
            pending=pending,
            summary=summary,
            last_index=memory.last_index,
            summary_tokens=tokens,
        )

    def _format_lines(
        self, settings: MemorySettings, window: list[Message], pruned: set[int],
    ) -> str:
        cleaner = self._cleaner_for(settings.kill_patterns)
        lines: list[str] = []
        for m in window:
            # Hidden by the host, not by our own pruning
            hidden = m.excluded_from_context and m.index not in pruned
            if hidden and not settings.include_hidden_messages:
                continue
            if m.is_user and not settings.include_user_messages:
                continue
            if m.is_system and not settings.include_system_messages:
                continue
            if m.is_character and not settings.include_character_messages:
                continue
            text = cleaner.clean(m.text)
            if text:
                lines.append(f"{m.speaker}: {text}")
        return "\n".join(lines)

    def _cleaner_for(self, kill_patterns: list[str] | None) -> TextCleaner:
        # None selects the default patterns
        key = tuple(kill_patterns) if kill_patterns is not None else None
        cleaner = self._cleaners.get(key)
        if cleaner is None:
            cleaner = self._cleaners[key] = TextCleaner(kill_patterns)
        return cleaner

    @staticmethod
    def _stale(memory: MemoryState, pending: int) -> SummaryReport:
        logger.info(
            "Conversation %s: memory changed during generation, discarding result",
            memory.conversation_id,
        )
        return SummarizationEngine._skipped(memory, "stale", pending)

    @staticmethod
    def _skipped(memory: MemoryState, reason: str, pending: int = 0) -> SummaryReport:
        return SummaryReport(
            status=SummaryStatus.SKIPPED,
            conversation_id=memory.conversation_id,
            reason=reason,
            pending=pending,
            summary=memory.summary,
            last_index=memory.last_index,
        )

    @staticmethod
    def _failed(
        memory: MemoryState,
        pending: int,
        message: str,
        cause: Exception | None = None,
    ) -> SummaryReport:
        error = GenerationFailure(message, conversation_id=memory.conversation_id, cause=cause)
        memory.last_error = message
        logger.warning("Conversation %s: %s", memory.conversation_id, message)
        return SummaryReport(
            status=SummaryStatus.FAILED,
            conversation_id=memory.conversation_id,
            reason="generation_failed",
            pending=pending,
            summary=memory.summary,
            last_index=memory.last_index,
            error=error,
        )
