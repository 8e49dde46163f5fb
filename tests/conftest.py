"""Shared fixtures for rolling-memory tests."""

from __future__ import annotations

import tempfile
import threading
from pathlib import Path

import pytest

from rolling_memory.config import load_config
from rolling_memory.host import LocalHost
from rolling_memory.types import MemorySettings, MemoryState, Message, PromptRequest, RollingMemoryConfig


class MockGenerationProvider:
    """Records every request and returns canned responses (no API calls).

    A response that is an Exception instance is raised instead of returned.
    The last response repeats once the list is exhausted.
    """

    def __init__(self, responses: list | None = None):
        self.requests: list[PromptRequest] = []
        self._responses = list(responses) if responses else ["Alice met Bob."]
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.requests)

    def generate(self, request: PromptRequest) -> str:
        with self._lock:
            self.requests.append(request)
            idx = min(len(self.requests) - 1, len(self._responses) - 1)
            response = self._responses[idx]
        if isinstance(response, Exception):
            raise response
        return response


class BlockingProvider(MockGenerationProvider):
    """Holds each generate() call until ``release`` is set."""

    def __init__(self, responses: list | None = None):
        super().__init__(responses)
        self.started = threading.Event()
        self.release = threading.Event()

    def generate(self, request: PromptRequest) -> str:
        self.started.set()
        self.release.wait(timeout=5)
        return super().generate(request)


def make_messages(count: int, start: int = 0) -> list[Message]:
    """Alternating user/character messages with deterministic text."""
    return [
        Message(
            index=i,
            speaker="Alice" if i % 2 == 0 else "Bob",
            text=f"line {i}",
            role="user" if i % 2 == 0 else "character",
        )
        for i in range(start, start + count)
    ]


@pytest.fixture
def settings() -> MemorySettings:
    return MemorySettings(threshold=5)


@pytest.fixture
def memory() -> MemoryState:
    return MemoryState(conversation_id="chat-1")


@pytest.fixture
def mock_provider() -> MockGenerationProvider:
    return MockGenerationProvider()


@pytest.fixture
def host() -> LocalHost:
    return LocalHost(conversation_id="chat-1")


@pytest.fixture
def memory_config() -> RollingMemoryConfig:
    """Config with synchronous writes and an in-process store."""
    return load_config(config_dict={
        "persist_debounce": 0,
        "storage": {"backend": "memory"},
        "settings": {"threshold": 5},
    })


@pytest.fixture
def tmp_store_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def tmp_sqlite_db(tmp_store_dir):
    return tmp_store_dir / "test_store.db"
