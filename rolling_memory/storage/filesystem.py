"""FilesystemStore: one JSON file per conversation + YAML settings file."""

from __future__ import annotations

import hashlib
import json
import re
from pathlib import Path

import yaml

from ..core.store import MemoryStore
from ..types import MemoryState
from .helpers import memory_from_dict, memory_to_dict

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _conversation_filename(conversation_id: str) -> str:
    """Filesystem-safe name; the hash suffix keeps sanitized ids distinct."""
    slug = _UNSAFE_RE.sub("_", conversation_id).strip("._")[:64] or "conversation"
    digest = hashlib.sha256(conversation_id.encode("utf-8")).hexdigest()[:12]
    return f"{slug}-{digest}.json"


class FilesystemStore(MemoryStore):
    """Plain files under *root*: ``memory/*.json`` and ``settings.yaml``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._memory_dir = self.root / "memory"
        self._settings_path = self.root / "settings.yaml"
        self._memory_dir.mkdir(parents=True, exist_ok=True)

    def _memory_path(self, conversation_id: str) -> Path:
        return self._memory_dir / _conversation_filename(conversation_id)

    def load_memory(self, conversation_id: str) -> MemoryState | None:
        path = self._memory_path(conversation_id)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            return None
        return memory_from_dict(data, conversation_id)

    def save_memory(self, state: MemoryState) -> None:
        path = self._memory_path(state.conversation_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(memory_to_dict(state), indent=2))
        tmp.replace(path)

    def delete_memory(self, conversation_id: str) -> bool:
        path = self._memory_path(conversation_id)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def list_conversations(self) -> list[str]:
        ids: list[str] = []
        for path in self._memory_dir.glob("*.json"):
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError):
                continue
            if data.get("conversation_id"):
                ids.append(data["conversation_id"])
        return sorted(ids)

    def load_settings(self) -> dict | None:
        if not self._settings_path.is_file():
            return None
        try:
            data = yaml.safe_load(self._settings_path.read_text())
        except yaml.YAMLError:
            return None
        return data if isinstance(data, dict) else None

    def save_settings(self, settings: dict) -> None:
        self._settings_path.write_text(yaml.safe_dump(settings, default_flow_style=False))
