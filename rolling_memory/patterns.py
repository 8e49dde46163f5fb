"""Regex patterns for noise blocks stripped from messages before summarization.

Kept in a standalone module to avoid circular imports between types.py
and core/cleaner.py.
"""

DEFAULT_KILL_PATTERNS: list[str] = [
    # Stats/status panel: a header line plus the non-blank lines under it.
    # The header must end a line, so a single line of prose is never matched.
    r"(?im)^[ \t]*(?:\*\*|#+[ \t]*|\[)?(?:stats|status|character status|inventory)(?:\*\*|\])?[ \t]*(?::[^\n]*)?(?:(?:\n(?![ \t]*$)[^\n]*)+|(?=\n))",
    r"(?is)<details\b[^>]*>.*?</details>",
    r"(?is)<think>.*?</think>",
    r"(?is)<thinking>.*?</thinking>",
]

# Fenced code delimiters; a language tag is only consumed when it ends the line
CODE_FENCE_PATTERN = r"(?:```|~~~)(?:[\w+-]+(?=[ \t]*(?:\n|$)))?"

MARKUP_TAG_PATTERN = r"<[^<>]+>"

# Section label lines inside a prompt template, e.g. "NEW EVENTS:" or "[SUMMARY]"
SECTION_LABEL_PATTERN = r"(?m)^[ \t]*(\[[A-Z][A-Z0-9 _-]*\]|[A-Z][A-Z0-9 _-]{2,}:)[ \t]*$"
