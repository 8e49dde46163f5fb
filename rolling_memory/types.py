"""All dataclasses, Protocols, and exception types for rolling-memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Literal, Protocol, runtime_checkable

from .patterns import DEFAULT_KILL_PATTERNS


# ---------------------------------------------------------------------------
# Host messages
# ---------------------------------------------------------------------------

@dataclass
class Message:
    """One message in the host's ordered chat list.

    Owned by the host. The only field this package writes is
    ``excluded_from_context``.
    """
    index: int
    speaker: str
    text: str
    role: str = "character"  # "user", "character", "system"
    excluded_from_context: bool = False

    @property
    def is_user(self) -> bool:
        return self.role == "user"

    @property
    def is_system(self) -> bool:
        return self.role == "system"

    @property
    def is_character(self) -> bool:
        return self.role == "character"


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------

@dataclass
class MemoryState:
    """Per-conversation rolling memory record."""
    conversation_id: str
    summary: str = ""
    last_index: int = 0  # exclusive upper bound of messages folded into summary
    updated_at: datetime | None = None
    revision: int = 0  # bumped on every wholesale replacement
    pruned: list[int] = field(default_factory=list)  # indices whose flag we set
    last_error: str = ""


class SummaryStatus(str, Enum):
    SUMMARIZED = "summarized"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SummaryReport:
    """Outcome of one summarization attempt."""
    status: SummaryStatus
    conversation_id: str = ""
    reason: str = ""
    pending: int = 0
    summary: str = ""
    last_index: int = 0
    summary_tokens: int = 0
    error: GenerationFailure | None = None

    @property
    def ok(self) -> bool:
        return self.status == SummaryStatus.SUMMARIZED


@dataclass
class MemoryStatus:
    """Display data for a presentation layer."""
    visible: bool
    summary: str = ""
    pending: int = 0
    last_index: int = 0
    pruned_count: int = 0
    last_error: str = ""
    updated_at: datetime | None = None


class DispatchState(str, Enum):
    IDLE = "idle"
    SUMMARIZING = "summarizing"


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

@dataclass
class PromptRequest:
    """Format-agnostic generation request; providers convert it to wire shape."""
    prompt: str
    max_tokens: int = 400
    temperature: float = 0.3
    stop_sequences: list[str] = field(default_factory=list)
    system: str = ""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class RollingMemoryError(Exception):
    """Base class for errors raised inside rolling-memory."""


class GenerationFailure(RollingMemoryError):
    """Generation call failed, timed out, or returned nothing usable."""

    def __init__(self, message: str, conversation_id: str = "", cause: Exception | None = None):
        super().__init__(message)
        self.conversation_id = conversation_id
        self.cause = cause


class ConfigurationError(RollingMemoryError):
    """Settings or prompt template are malformed."""


class PersistenceFailure(RollingMemoryError):
    """Host storage write failed."""


class LLMProviderError(Exception):
    def __init__(self, message: str, provider: str, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class GenerationProvider(Protocol):
    def generate(self, request: PromptRequest) -> str: ...


@runtime_checkable
class EventBus(Protocol):
    def on(self, event: str, handler: Callable[..., object]) -> None: ...


@runtime_checkable
class HostAdapter(Protocol):
    """Everything the engine needs from the chat host."""

    def current_conversation_id(self) -> str | None: ...

    def get_messages(self, conversation_id: str) -> list[Message]: ...

    def set_excluded(self, conversation_id: str, index: int, excluded: bool) -> None: ...

    def set_injection(
        self, key: str, text: str, depth: int, role: Literal["system", "user", "assistant"],
    ) -> None: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_PROMPT_TEMPLATE = """\
You are maintaining a rolling memory of a roleplay conversation.
Merge the existing memory with the new events into one concise narrative.
Keep names, relationships, places, promises and unresolved threads.
Drop small talk. Write in past tense, third person. Do not invent events.

EXISTING MEMORY:
{{EXISTING}}

NEW EVENTS:
{{NEW_LINES}}

UPDATED MEMORY:"""


@dataclass
class MemorySettings:
    enabled: bool = True
    threshold: int = 10
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    pruning_enabled: bool = False
    pruning_buffer: int = 2
    pruning_scope: Literal["prompt", "display"] = "prompt"
    show_visuals: bool = True
    debug: bool = False
    max_tokens: int = 400
    temperature: float = 0.3
    timeout: float = 60.0
    include_user_messages: bool = True
    include_character_messages: bool = True
    include_system_messages: bool = False
    include_hidden_messages: bool = False
    message_lag: int = 0  # newest messages held back from summarization
    start_injecting_after: int = 3  # minimum chat length before the block is injected
    injection_key: str = "rolling_memory"
    injection_depth: int = 2
    injection_role: Literal["system", "user", "assistant"] = "system"
    kill_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_KILL_PATTERNS))


@dataclass
class SummarizationConfig:
    provider: str = "ollama"
    model: str = "qwen3:4b-instruct-2507-fp16"


@dataclass
class StorageConfig:
    backend: str = "sqlite"  # "sqlite", "filesystem", or "memory"
    root: str = ".rollingmemory/store"
    sqlite_path: str = ".rollingmemory/store.db"


@dataclass
class RollingMemoryConfig:
    version: str = "0.1"
    storage_root: str = ".rollingmemory"
    token_counter: str = "estimate"
    persist_debounce: float = 0.5  # seconds; 0 writes synchronously
    background: bool = False  # run summarization cycles on a worker thread
    settings: MemorySettings = field(default_factory=MemorySettings)
    summarization: SummarizationConfig = field(default_factory=SummarizationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    providers: dict[str, dict] = field(default_factory=dict)
