"""Token counting for summary size reporting."""

from __future__ import annotations

import importlib
from typing import Callable

CALLABLE_PREFIX = "callable:"
TIKTOKEN_ENCODING = "cl100k_base"


def estimate_tokens(text: str) -> int:
    """About four characters per token; empty text is zero."""
    if not text:
        return 0
    return max(1, len(text) // 4)


def _tiktoken_counter() -> Callable[[str], int]:
    try:
        import tiktoken
    except ImportError as e:
        raise ImportError(
            "tiktoken is not installed; pip install 'rolling-memory[tiktoken]'"
        ) from e
    encoding = tiktoken.get_encoding(TIKTOKEN_ENCODING)

    def count(text: str) -> int:
        return len(encoding.encode(text)) if text else 0

    return count


def _load_callable(target: str) -> Callable[[str], int]:
    module_path, sep, func_name = target.rpartition(":")
    if not sep or not module_path or not func_name:
        raise ValueError(
            f"Bad token counter '{CALLABLE_PREFIX}{target}'; expected callable:module:func"
        )
    return getattr(importlib.import_module(module_path), func_name)


def create_token_counter(mode: str = "estimate") -> Callable[[str], int]:
    """Return a ``text -> int`` counter.

    ``estimate`` needs nothing, ``tiktoken`` needs the extra, and
    ``callable:pkg.module:func`` imports any function with that signature.
    """
    if mode == "estimate":
        return estimate_tokens
    if mode == "tiktoken":
        return _tiktoken_counter()
    if mode.startswith(CALLABLE_PREFIX):
        return _load_callable(mode[len(CALLABLE_PREFIX):])
    raise ValueError(f"Unknown token counter mode: {mode}")
