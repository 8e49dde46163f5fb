"""TextCleaner: strip UI markup and noise from a message before summarization."""

from __future__ import annotations

import logging
import re

from ..patterns import CODE_FENCE_PATTERN, DEFAULT_KILL_PATTERNS, MARKUP_TAG_PATTERN

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(CODE_FENCE_PATTERN)
_TAG_RE = re.compile(MARKUP_TAG_PATTERN)
_WS_RE = re.compile(r"\s+")


class TextCleaner:
    """Pure, deterministic message cleaner.

    Strip pass order: kill-pattern blocks, code-fence delimiters (inner text
    kept), markup tags (each replaced by one space).  The strip pass repeats
    until the text stops changing, so a block hidden inside markup is caught
    once the tags are gone.  Line structure survives until every strip pass
    is done; whitespace is collapsed once at the end, so line-anchored kill
    patterns never see the collapsed single-line text.  Each strip pass that
    changes the text shortens it, which bounds the loop.
    """

    def __init__(self, kill_patterns: list[str] | None = None) -> None:
        if kill_patterns is None:
            kill_patterns = DEFAULT_KILL_PATTERNS
        self._kill: list[re.Pattern[str]] = []
        for pattern in kill_patterns:
            try:
                self._kill.append(re.compile(pattern))
            except re.error as e:
                logger.warning("Ignoring invalid kill pattern %r: %s", pattern, e)

    def clean(self, raw: str | None) -> str:
        text = raw or ""
        while True:
            stripped = self._strip_once(text)
            if stripped == text:
                break
            text = stripped
        return _WS_RE.sub(" ", text).strip()

    def _strip_once(self, text: str) -> str:
        for pattern in self._kill:
            text = pattern.sub("", text)
        text = _FENCE_RE.sub("", text)
        return _TAG_RE.sub(" ", text)


def clean(raw: str | None, kill_patterns: list[str] | None = None) -> str:
    """Clean *raw*; *kill_patterns* replaces the defaults when given."""
    return TextCleaner(kill_patterns).clean(raw)
