"""MemoryEngine: event dispatcher wiring host events to summarization and injection."""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import SettingsStore, load_config
from .core.injector import ContextInjector
from .core.persistence import DebouncedSaver
from .core.store import MemoryStore
from .core.summarizer import SummarizationEngine
from .host import (
    EVENT_CONVERSATION_CHANGED,
    EVENT_GENERATION_STARTED,
    EVENT_MESSAGE_ADDED,
    LocalHost,
)
from .storage.filesystem import FilesystemStore
from .storage.memory import InMemoryStore
from .storage.sqlite import SQLiteStore
from .token_counter import create_token_counter
from .types import (
    DispatchState,
    EventBus,
    GenerationProvider,
    HostAdapter,
    MemorySettings,
    MemoryState,
    MemoryStatus,
    Message,
    PersistenceFailure,
    RollingMemoryConfig,
    SummaryReport,
    SummaryStatus,
)

logger = logging.getLogger(__name__)


class MemoryEngine:
    """Main orchestrator: one instance per host integration.

    Usage:
        engine = MemoryEngine(config_path="./rolling-memory.yaml", host=host)
        engine.bind(host)          # subscribe to host events

        # or drive it directly
        engine.on_message_added("chat-1")
        engine.summarize_now()
        engine.wipe_memory()

    Every public entry point catches and logs its own failures; nothing
    raised in here reaches the host's event loop.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: RollingMemoryConfig | None = None,
        host: HostAdapter | None = None,
        provider: GenerationProvider | None = None,
        store: MemoryStore | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self._token_counter = create_token_counter(self.config.token_counter)
        self.host: HostAdapter = host or LocalHost()

        self._init_store(store)
        self._init_settings()
        self._init_provider(provider)
        self._init_summarizer()
        self._injector = ContextInjector(self.host)

        self._memories: dict[str, MemoryState] = {}
        self._memories_lock = threading.Lock()
        self._saver = DebouncedSaver(self._write_memory, delay=self.config.persist_debounce)
        self._threads: list[threading.Thread] = []
        self._active: str | None = self.host.current_conversation_id()

    def _init_store(self, store: MemoryStore | None) -> None:
        """Initialize the storage backend."""
        if store is not None:
            self._store = store
        elif self.config.storage.backend == "memory":
            self._store = InMemoryStore()
        elif self.config.storage.backend == "sqlite":
            self._store = SQLiteStore(db_path=self.config.storage.sqlite_path)
        else:
            self._store = FilesystemStore(root=self.config.storage.root)

    def _init_settings(self) -> None:
        self._settings_store = SettingsStore(
            self._store,
            initial=self.config.settings,
            debounce=self.config.persist_debounce,
        )
        self._settings_store.load()

    def _init_provider(self, provider: GenerationProvider | None) -> None:
        if provider is not None:
            self._provider = provider
            return
        provider_name = self.config.summarization.provider
        provider_config = self.config.providers.get(provider_name, {})
        try:
            self._provider = self._build_provider(provider_name, provider_config)
        except Exception as e:
            logger.error("Failed to build provider %s: %s", provider_name, e)
            self._provider = None
        if self._provider is None:
            logger.warning(
                "No generation provider available for '%s'; summarization disabled",
                provider_name,
            )

    def _init_summarizer(self) -> None:
        self._summarizer = SummarizationEngine(
            provider=self._provider,
            token_counter=self._token_counter,
        )

    def _build_provider(self, provider_name: str, provider_config: dict):
        """Build a generation provider from config."""
        ptype = provider_config.get("type", provider_name)
        timeout = provider_config.get("timeout", self.settings.timeout)

        if ptype in ("generic_openai", "ollama"):
            from .providers.generic_openai import GenericOpenAIProvider
            return GenericOpenAIProvider(
                base_url=provider_config.get("base_url", "http://127.0.0.1:11434/v1"),
                model=provider_config.get("model", self.config.summarization.model),
                api_key=provider_config.get("api_key", "not-needed"),
                timeout=timeout,
            )

        if ptype == "anthropic":
            api_key_env = provider_config.get("api_key_env", "ANTHROPIC_API_KEY")
            api_key = provider_config.get("api_key") or os.environ.get(api_key_env, "")
            if api_key:
                from .providers.anthropic import AnthropicProvider
                return AnthropicProvider(
                    api_key=api_key,
                    model=provider_config.get("model", self.config.summarization.model),
                    timeout=timeout,
                )

        return None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def settings(self) -> MemorySettings:
        return self._settings_store.settings

    @property
    def active_conversation(self) -> str | None:
        return self._active

    def state(self, conversation_id: str | None = None) -> DispatchState:
        conv = conversation_id or self._active
        if conv is not None and self._summarizer.is_busy(conv):
            return DispatchState.SUMMARIZING
        return DispatchState.IDLE

    def memory_for(self, conversation_id: str) -> MemoryState:
        """Cached MemoryState for a conversation, loaded lazily from the store."""
        with self._memories_lock:
            memory = self._memories.get(conversation_id)
            if memory is not None:
                return memory
            try:
                memory = self._store.load_memory(conversation_id)
            except Exception as e:
                logger.error("Failed to load memory for %s: %s", conversation_id, e)
                memory = None
            if memory is None:
                memory = MemoryState(conversation_id=conversation_id)
            self._memories[conversation_id] = memory
            return memory

    def _messages(self, conversation_id: str) -> list[Message]:
        return self.host.get_messages(conversation_id)

    def _resolve(self, conversation_id: str | None) -> str | None:
        return conversation_id or self._active or self.host.current_conversation_id()

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def bind(self, bus: EventBus) -> None:
        """Subscribe to the host's lifecycle events."""
        bus.on(EVENT_MESSAGE_ADDED, self.on_message_added)
        bus.on(EVENT_CONVERSATION_CHANGED, self.on_conversation_changed)
        bus.on(EVENT_GENERATION_STARTED, self.on_generation_started)

    def on_message_added(self, conversation_id: str | None = None) -> SummaryReport | None:
        """Run a cycle if the threshold is met, then refresh injection and pruning.

        Returns the cycle's report, or None when the cycle was handed to a
        background thread.
        """
        try:
            conv = self._resolve(conversation_id)
            if conv is None:
                logger.debug("Message added with no active conversation")
                return SummaryReport(status=SummaryStatus.SKIPPED, reason="no_conversation")
            return self._dispatch(conv, force=False)
        except Exception as e:
            logger.error("on_message_added failed: %s", e)
            return None

    def on_conversation_changed(self, conversation_id: str | None = None) -> MemoryStatus | None:
        """Switch the active conversation. In-flight cycles elsewhere keep running."""
        try:
            self._active = conversation_id or self.host.current_conversation_id()
            if self._active is None:
                return None
            memory = self.memory_for(self._active)
            logger.debug(
                "Switched to conversation %s (last_index=%d)", self._active, memory.last_index,
            )
            self._refresh(self._active)
            return self._injector.render_status(self.settings, memory, self._messages(self._active))
        except Exception as e:
            logger.error("on_conversation_changed failed: %s", e)
            return None

    def on_generation_started(self, conversation_id: str | None = None) -> str:
        """Just-in-time pruning and injection before the host builds its prompt."""
        try:
            conv = self._resolve(conversation_id)
            if conv is None:
                return ""
            return self._refresh(conv)
        except Exception as e:
            logger.error("on_generation_started failed: %s", e)
            return ""

    # ------------------------------------------------------------------
    # User commands
    # ------------------------------------------------------------------

    def summarize_now(self, conversation_id: str | None = None) -> SummaryReport | None:
        """Manual cycle, bypassing the threshold."""
        try:
            conv = self._resolve(conversation_id)
            if conv is None:
                return SummaryReport(status=SummaryStatus.SKIPPED, reason="no_conversation")
            logger.info("Manual summarization requested for %s", conv)
            return self._dispatch(conv, force=True)
        except Exception as e:
            logger.error("summarize_now failed: %s", e)
            return None

    def wipe_memory(self, conversation_id: str | None = None) -> bool:
        """Reset memory to empty, clear the exclusion flags we set, drop the injection."""
        try:
            conv = self._resolve(conversation_id)
            if conv is None:
                return False
            memory = self.memory_for(conv)
            cleared = self._injector.reset_pruning(memory, self._messages(conv))
            memory.summary = ""
            memory.last_index = 0
            memory.last_error = ""
            memory.updated_at = datetime.now(timezone.utc)
            memory.revision += 1
            logger.info("Wiped memory for %s (%d messages restored to context)", conv, cleared)
            self._persist(conv)
            self._refresh(conv)
            return True
        except Exception as e:
            logger.error("wipe_memory failed: %s", e)
            return False

    def set_summary(self, text: str, conversation_id: str | None = None) -> bool:
        """Replace the summary wholesale with a user edit."""
        try:
            conv = self._resolve(conversation_id)
            if conv is None:
                return False
            memory = self.memory_for(conv)
            memory.summary = (text or "").strip()
            memory.updated_at = datetime.now(timezone.utc)
            memory.revision += 1
            self._persist(conv)
            self._refresh(conv)
            return True
        except Exception as e:
            logger.error("set_summary failed: %s", e)
            return False

    def update_settings(self, **changes: Any) -> MemorySettings:
        settings = self._settings_store.update(**changes)
        if "timeout" in changes and hasattr(self._provider, "timeout"):
            self._provider.timeout = settings.timeout
        if self._active is not None:
            try:
                self._refresh(self._active)
            except Exception as e:
                logger.error("Refresh after settings change failed: %s", e)
        return settings

    def reset_prompt(self) -> MemorySettings:
        """Restore the default summarization prompt."""
        settings = self._settings_store.reset_prompt()
        logger.info("Prompt template reset to default")
        return settings

    def status(self, conversation_id: str | None = None) -> MemoryStatus | None:
        conv = self._resolve(conversation_id)
        if conv is None:
            return None
        return self._injector.render_status(
            self.settings, self.memory_for(conv), self._messages(conv),
        )

    def flush(self, timeout: float | None = None) -> None:
        """Wait for background cycles, then write everything pending."""
        for thread in list(self._threads):
            thread.join(timeout)
        self._threads = [t for t in self._threads if t.is_alive()]
        self._saver.flush()
        self._settings_store.flush()

    def close(self) -> None:
        """Flush pending writes and release the store."""
        self.flush()
        close = getattr(self._store, "close", None)
        if close is not None:
            close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, conv: str, force: bool) -> SummaryReport | None:
        if self._summarizer.is_busy(conv):
            logger.debug("Conversation %s is summarizing; event ignored", conv)
            self._refresh(conv)
            return SummaryReport(
                status=SummaryStatus.SKIPPED, conversation_id=conv, reason="in_flight",
            )
        if self.config.background:
            thread = threading.Thread(
                target=self._cycle_safe,
                args=(conv, force),
                name=f"rolling-memory-{conv}",
                daemon=True,
            )
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
            thread.start()
            return None
        return self._cycle(conv, force)

    def _cycle_safe(self, conv: str, force: bool) -> None:
        try:
            self._cycle(conv, force)
        except Exception as e:
            logger.error("Background summarization for %s failed: %s", conv, e)

    def _cycle(self, conv: str, force: bool) -> SummaryReport:
        memory = self.memory_for(conv)
        messages = self._messages(conv)
        report = self._summarizer.maybe_summarize(self.settings, memory, messages, force=force)
        if report.status != SummaryStatus.SKIPPED:
            # Persist to the conversation captured above, whatever is active now
            self._persist(conv)
        if report.status == SummaryStatus.FAILED:
            logger.warning("Memory for %s not updated; will retry on next trigger", conv)
        self._refresh(conv)
        return report

    def _refresh(self, conv: str) -> str:
        """Re-apply pruning and injection, for the active conversation only."""
        if conv != self._active:
            return ""
        memory = self.memory_for(conv)
        messages = self._messages(conv)
        pruned = self._injector.apply_pruning(self.settings, memory, messages)
        if pruned and self.settings.pruning_scope == "prompt":
            self._persist(conv)
        return self._injector.inject(self.settings, memory, len(messages))

    def _persist(self, conv: str) -> None:
        self._saver.schedule(conv)

    def _write_memory(self, conv: str) -> None:
        memory = self._memories.get(conv)
        if memory is None:
            return
        try:
            self._store.save_memory(memory)
        except Exception as e:
            raise PersistenceFailure(f"memory write for {conv} failed: {e}") from e
