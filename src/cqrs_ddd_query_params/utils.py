"""
Shared helpers for text patterns and record lookup.

These are pure-Python helpers with no infrastructure dependencies.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# ---------------------------------------------------------------------------
# LIKE patterns
# ---------------------------------------------------------------------------

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Escape the LIKE metacharacters ``%``, ``_`` and the escape character itself."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def add_wildcard(value: Any) -> str:
    """``foo`` → ``%foo%`` with the value escaped."""
    return f"%{escape_like(str(value))}%"


def add_wildcard_prefix(value: Any) -> str:
    """``foo`` → ``%foo`` (matches values ending with *value*)."""
    return f"%{escape_like(str(value))}"


def add_wildcard_suffix(value: Any) -> str:
    """``foo`` → ``foo%`` (matches values starting with *value*)."""
    return f"{escape_like(str(value))}%"


def split_search_text(value: str | list[str] | tuple[str, ...]) -> list[str]:
    """
    Split search text into terms.

    Strings are split on whitespace; lists are taken as already tokenized.
    Empty terms are discarded.
    """
    if isinstance(value, str):
        return value.split()
    return [term for term in value if term]


# ---------------------------------------------------------------------------
# Record lookup
# ---------------------------------------------------------------------------


def get_value(item: Any, key: str) -> Any:
    """Read *key* from a mapping or an object attribute; ``None`` when missing."""
    if item is None:
        return None
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def get_path(item: Any, path: tuple[str, ...] | list[str]) -> Any:
    """Follow *path* through nested mappings/objects; ``None`` if any hop is missing."""
    current = item
    for key in path:
        current = get_value(current, key)
        if current is None:
            return None
    return current
