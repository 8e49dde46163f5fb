"""rolling-memory: incremental LLM-written story memory for long chat sessions."""

from .config import load_config
from .engine import MemoryEngine
from .host import LocalHost
from .types import (
    DispatchState,
    MemorySettings,
    MemoryState,
    MemoryStatus,
    Message,
    PromptRequest,
    RollingMemoryConfig,
    SummaryReport,
    SummaryStatus,
)

__version__ = "0.1.0"

__all__ = [
    "MemoryEngine",
    "LocalHost",
    "load_config",
    "DispatchState",
    "MemorySettings",
    "MemoryState",
    "MemoryStatus",
    "Message",
    "PromptRequest",
    "RollingMemoryConfig",
    "SummaryReport",
    "SummaryStatus",
]
