"""Tests for LocalHost: message list, event bus, prompt assembly."""

import pytest

from rolling_memory.host import (
    EVENT_CONVERSATION_CHANGED,
    EVENT_GENERATION_STARTED,
    EVENT_MESSAGE_ADDED,
    LocalHost,
)
from rolling_memory.types import EventBus, HostAdapter


def test_satisfies_protocols():
    host = LocalHost()
    assert isinstance(host, HostAdapter)
    assert isinstance(host, EventBus)


def test_add_message_assigns_index_and_emits(host):
    seen = []
    host.on(EVENT_MESSAGE_ADDED, seen.append)

    first = host.add_message("Alice", "Hi.", role="user")
    second = host.add_message("Bob", "Hello.")

    assert (first.index, second.index) == (0, 1)
    assert second.role == "character"
    assert seen == ["chat-1", "chat-1"]


def test_add_message_without_conversation_raises():
    with pytest.raises(RuntimeError):
        LocalHost().add_message("Alice", "Hi.")


def test_switch_conversation_emits(host):
    seen = []
    host.on(EVENT_CONVERSATION_CHANGED, seen.append)
    host.switch_conversation("chat-2")
    assert host.current_conversation_id() == "chat-2"
    assert seen == ["chat-2"]


def test_handler_errors_are_logged_not_raised(host, caplog):
    def broken(_conversation_id):
        raise ValueError("handler bug")

    calls = []
    host.on(EVENT_MESSAGE_ADDED, broken)
    host.on(EVENT_MESSAGE_ADDED, calls.append)

    host.add_message("Alice", "Hi.")

    assert calls == ["chat-1"]
    assert "handler bug" in caplog.text


def test_set_excluded_ignores_out_of_range(host):
    host.add_message("Alice", "Hi.")
    host.set_excluded("chat-1", 5, True)
    host.set_excluded("chat-1", 0, True)
    assert host.get_messages("chat-1")[0].excluded_from_context


def test_delete_last_message(host):
    host.add_message("Alice", "Hi.")
    host.add_message("Bob", "Hello.")
    host.delete_last_message()
    assert [m.text for m in host.get_messages("chat-1")] == ["Hi."]


class TestAssemblePrompt:
    def test_emits_generation_started(self, host):
        seen = []
        host.on(EVENT_GENERATION_STARTED, seen.append)
        host.assemble_prompt()
        assert seen == ["chat-1"]

    def test_roles_and_exclusion(self, host):
        host.add_message("Alice", "Hi.", role="user")
        host.add_message("Bob", "Hello.")
        host.add_message("Narrator", "Rain falls.", role="system")
        host.set_excluded("chat-1", 1, True)

        chat = host.assemble_prompt()

        assert chat == [
            {"role": "user", "content": "Alice: Hi."},
            {"role": "system", "content": "Narrator: Rain falls."},
        ]

    def test_injection_depth(self, host):
        for i in range(4):
            host.add_message("Alice", f"m{i}")
        host.set_injection("mem", "MEMORY", 2, "system")

        chat = host.assemble_prompt()

        assert chat[2] == {"role": "system", "content": "MEMORY"}
        assert len(chat) == 5

    def test_injection_depth_beyond_chat_goes_first(self, host):
        host.add_message("Alice", "only")
        host.set_injection("mem", "MEMORY", 10, "system")
        assert host.assemble_prompt()[0]["content"] == "MEMORY"
