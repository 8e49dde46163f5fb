from .filesystem import FilesystemStore
from .memory import InMemoryStore
from .sqlite import SQLiteStore

__all__ = ["FilesystemStore", "InMemoryStore", "SQLiteStore"]
