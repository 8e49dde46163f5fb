"""Shared helpers for storage backends."""

from __future__ import annotations

from datetime import datetime, timezone

from ..types import MemoryState


def dt_to_str(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def str_to_dt(s: str | None) -> datetime | None:
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def memory_to_dict(state: MemoryState) -> dict:
    return {
        "conversation_id": state.conversation_id,
        "summary": state.summary,
        "last_index": state.last_index,
        "updated_at": dt_to_str(state.updated_at),
        "revision": state.revision,
        "pruned": list(state.pruned),
        "last_error": state.last_error,
    }


def memory_from_dict(data: dict, conversation_id: str = "") -> MemoryState:
    return MemoryState(
        conversation_id=data.get("conversation_id") or conversation_id,
        summary=data.get("summary", "") or "",
        last_index=max(0, int(data.get("last_index", 0))),
        updated_at=str_to_dt(data.get("updated_at")),
        revision=int(data.get("revision", 0)),
        pruned=[int(i) for i in data.get("pruned", [])],
        last_error=data.get("last_error", "") or "",
    )
