"""Configuration loading, validation, defaults, and the settings store."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import yaml

from .core.persistence import DebouncedSaver
from .core.store import MemoryStore
from .types import (
    DEFAULT_PROMPT_TEMPLATE,
    ConfigurationError,
    MemorySettings,
    PersistenceFailure,
    RollingMemoryConfig,
    StorageConfig,
    SummarizationConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = [
    "rolling-memory.yaml",
    "rolling-memory.yml",
    "rolling-memory.json",
    "rollingmemory.yaml",
    "rollingmemory.yml",
    "rollingmemory.json",
]

REQUIRED_PLACEHOLDERS = ("{{EXISTING}}", "{{NEW_LINES}}")

_VALID_ROLES = ("system", "user", "assistant")
_VALID_SCOPES = ("prompt", "display")


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def missing_placeholders(template: str) -> list[str]:
    return [p for p in REQUIRED_PLACEHOLDERS if p not in template]


def _clamp_int(value: Any, minimum: int, default: int) -> int:
    try:
        return max(minimum, int(value))
    except (TypeError, ValueError):
        return default


def settings_from_dict(raw: dict[str, Any] | None) -> MemorySettings:
    """Merge *raw* over the defaults. Unknown keys are ignored, ranges clamped."""
    defaults = MemorySettings()
    raw = raw or {}
    known = {f.name for f in fields(MemorySettings)}
    values = {k: v for k, v in raw.items() if k in known}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.debug("Ignoring unknown settings keys: %s", ", ".join(unknown))

    settings = MemorySettings(**{**asdict(defaults), **values})

    settings.threshold = _clamp_int(settings.threshold, 1, defaults.threshold)
    settings.pruning_buffer = _clamp_int(settings.pruning_buffer, 0, defaults.pruning_buffer)
    settings.message_lag = _clamp_int(settings.message_lag, 0, defaults.message_lag)
    settings.start_injecting_after = _clamp_int(
        settings.start_injecting_after, 0, defaults.start_injecting_after,
    )
    if not isinstance(settings.prompt_template, str) or not settings.prompt_template.strip():
        settings.prompt_template = defaults.prompt_template
    if settings.injection_role not in _VALID_ROLES:
        settings.injection_role = defaults.injection_role
    if settings.pruning_scope not in _VALID_SCOPES:
        settings.pruning_scope = defaults.pruning_scope
    if not isinstance(settings.kill_patterns, (list, tuple)):
        settings.kill_patterns = defaults.kill_patterns
    else:
        settings.kill_patterns = [p for p in settings.kill_patterns if isinstance(p, str)]
    return settings


def settings_to_dict(settings: MemorySettings) -> dict[str, Any]:
    return asdict(settings)


def _build_config(raw: dict[str, Any]) -> RollingMemoryConfig:
    """Build a RollingMemoryConfig from a raw dict."""
    settings = settings_from_dict(raw.get("settings", {}))

    summ_raw = raw.get("summarization", {})
    summarization = SummarizationConfig(
        provider=summ_raw.get("provider", "ollama"),
        model=summ_raw.get("model", "qwen3:4b-instruct-2507-fp16"),
    )

    storage_root = raw.get("storage_root", ".rollingmemory")
    storage_raw = raw.get("storage", {})
    storage = StorageConfig(
        backend=storage_raw.get("backend", "sqlite"),
        root=storage_raw.get("root", storage_root + "/store"),
        sqlite_path=storage_raw.get("sqlite_path", storage_root + "/store.db"),
    )

    return RollingMemoryConfig(
        version=str(raw.get("version", "0.1")),
        storage_root=storage_root,
        token_counter=raw.get("token_counter", "estimate"),
        persist_debounce=float(raw.get("persist_debounce", 0.5)),
        background=bool(raw.get("background", False)),
        settings=settings,
        summarization=summarization,
        storage=storage,
        providers=raw.get("providers", {}),
    )


def validate_config(config: RollingMemoryConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []
    s = config.settings

    if s.threshold < 1:
        errors.append("settings.threshold must be >= 1")
    if s.pruning_buffer < 0:
        errors.append("settings.pruning_buffer must be >= 0")
    if s.max_tokens < 1:
        errors.append("settings.max_tokens must be >= 1")
    if s.timeout <= 0:
        errors.append("settings.timeout must be > 0")

    missing = missing_placeholders(s.prompt_template)
    if missing:
        errors.append(
            f"settings.prompt_template is missing {', '.join(missing)} "
            f"(template will be sent literally)"
        )

    if config.storage.backend not in ("sqlite", "filesystem", "memory"):
        errors.append(f"Unknown storage.backend '{config.storage.backend}'")

    if config.providers and config.summarization.provider not in config.providers:
        errors.append(
            f"Summarization provider '{config.summarization.provider}' "
            f"not found in providers section"
        )

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> RollingMemoryConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config root must be a mapping: {path}")

    return _build_config(raw)


def configure_logging(debug: bool) -> None:
    """Switch the package logger between INFO and DEBUG."""
    logging.getLogger("rolling_memory").setLevel(logging.DEBUG if debug else logging.INFO)


class SettingsStore:
    """Load / merge-defaults / save lifecycle for MemorySettings.

    Saves are debounced and never raise; a failed write only costs
    durability, the in-memory settings stay authoritative.
    """

    def __init__(
        self,
        store: MemoryStore,
        initial: MemorySettings | None = None,
        debounce: float = 0.5,
    ) -> None:
        self._store = store
        self.settings = initial or MemorySettings()
        self._saver = DebouncedSaver(self._write, delay=debounce)

    def load(self) -> MemorySettings:
        try:
            raw = self._store.load_settings()
        except Exception as e:
            logger.error("Failed to load settings, using defaults: %s", e)
            raw = None
        if raw is not None:
            self.settings = settings_from_dict({**settings_to_dict(self.settings), **raw})
        configure_logging(self.settings.debug)
        return self.settings

    def update(self, **changes: Any) -> MemorySettings:
        merged = {**settings_to_dict(self.settings), **changes}
        self.settings = settings_from_dict(merged)
        configure_logging(self.settings.debug)
        self.save()
        return self.settings

    def reset_prompt(self) -> MemorySettings:
        """Restore the default prompt template, keeping every other setting."""
        return self.update(prompt_template=DEFAULT_PROMPT_TEMPLATE)

    def save(self) -> None:
        self._saver.schedule("settings")

    def flush(self) -> None:
        self._saver.flush()

    def _write(self, _key: str) -> None:
        try:
            self._store.save_settings(settings_to_dict(self.settings))
        except Exception as e:
            raise PersistenceFailure(f"settings write failed: {e}") from e
