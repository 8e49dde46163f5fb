"""Tests for DebouncedSaver."""

import threading

from rolling_memory.core.persistence import DebouncedSaver


def test_zero_delay_writes_inline():
    written = []
    saver = DebouncedSaver(written.append, delay=0)
    saver.schedule("chat-1")
    assert written == ["chat-1"]
    assert saver.pending == []


def test_coalesces_until_flush():
    written = []
    saver = DebouncedSaver(written.append, delay=60)
    saver.schedule("chat-1")
    saver.schedule("chat-1")
    saver.schedule("chat-2")

    assert written == []
    assert saver.pending == ["chat-1", "chat-2"]

    saver.flush()
    assert written == ["chat-1", "chat-2"]
    assert saver.pending == []


def test_timer_fires():
    done = threading.Event()
    written = []

    def write(key):
        written.append(key)
        done.set()

    saver = DebouncedSaver(write, delay=0.01)
    saver.schedule("chat-1")
    assert done.wait(timeout=5)
    assert written == ["chat-1"]


def test_write_errors_logged_not_raised(caplog):
    def write(key):
        raise OSError("disk full")

    saver = DebouncedSaver(write, delay=0)
    saver.schedule("chat-1")
    assert "disk full" in caplog.text


def test_one_failure_does_not_block_others():
    written = []

    def write(key):
        if key == "bad":
            raise OSError("nope")
        written.append(key)

    saver = DebouncedSaver(write, delay=60)
    saver.schedule("bad")
    saver.schedule("good")
    saver.flush()
    assert written == ["good"]
