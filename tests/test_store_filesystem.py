"""Tests for FilesystemStore and InMemoryStore."""

import pytest

from rolling_memory.storage.filesystem import FilesystemStore
from rolling_memory.storage.memory import InMemoryStore
from rolling_memory.types import MemoryState


@pytest.fixture
def store(tmp_path):
    return FilesystemStore(root=tmp_path / "store")


class TestFilesystemStore:
    def test_save_and_load(self, store):
        store.save_memory(MemoryState(conversation_id="chat-1", summary="Alice met Bob.", last_index=5))
        loaded = store.load_memory("chat-1")
        assert loaded.summary == "Alice met Bob."
        assert loaded.last_index == 5

    def test_load_missing(self, store):
        assert store.load_memory("chat-1") is None

    def test_unsafe_ids_get_distinct_files(self, store):
        store.save_memory(MemoryState(conversation_id="a/b", summary="one"))
        store.save_memory(MemoryState(conversation_id="a:b", summary="two"))

        assert store.load_memory("a/b").summary == "one"
        assert store.load_memory("a:b").summary == "two"
        assert store.list_conversations() == ["a/b", "a:b"]
        for path in (store.root / "memory").iterdir():
            assert "/" not in path.name and ":" not in path.name

    def test_no_temp_files_left(self, store):
        store.save_memory(MemoryState(conversation_id="chat-1", summary="x"))
        names = [p.name for p in (store.root / "memory").iterdir()]
        assert len(names) == 1
        assert names[0].endswith(".json")

    def test_corrupt_file_treated_as_missing(self, store):
        store.save_memory(MemoryState(conversation_id="chat-1", summary="x"))
        path = next((store.root / "memory").iterdir())
        path.write_text("{not json")
        assert store.load_memory("chat-1") is None
        assert store.list_conversations() == []

    def test_delete(self, store):
        store.save_memory(MemoryState(conversation_id="chat-1"))
        assert store.delete_memory("chat-1")
        assert not store.delete_memory("chat-1")

    def test_settings_yaml(self, store):
        assert store.load_settings() is None
        store.save_settings({"threshold": 3, "pruning_enabled": True})
        assert store.load_settings() == {"threshold": 3, "pruning_enabled": True}
        assert (store.root / "settings.yaml").is_file()

    def test_non_mapping_settings_ignored(self, store):
        (store.root / "settings.yaml").write_text("- just\n- a list\n")
        assert store.load_settings() is None


class TestInMemoryStore:
    def test_returns_copies(self):
        store = InMemoryStore()
        memory = MemoryState(conversation_id="chat-1", pruned=[1])
        store.save_memory(memory)
        memory.pruned.append(2)

        loaded = store.load_memory("chat-1")
        assert loaded.pruned == [1]
        loaded.summary = "changed"
        assert store.load_memory("chat-1").summary == ""

    def test_list_delete_settings(self):
        store = InMemoryStore()
        store.save_memory(MemoryState(conversation_id="b"))
        store.save_memory(MemoryState(conversation_id="a"))
        assert store.list_conversations() == ["a", "b"]
        assert store.delete_memory("a")
        assert store.load_settings() is None
        store.save_settings({"threshold": 2})
        assert store.load_settings() == {"threshold": 2}
