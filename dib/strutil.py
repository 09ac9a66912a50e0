"""Small helpers for lists of strings."""

from __future__ import annotations

from collections.abc import Iterable


def convert_kv_strings_to_map(values: Iterable[str]) -> dict[str, str]:
    """Turn ["key=value", ...] into {"key": "value", ...}.

    A string without "=" maps to an empty value; only the first "=" splits.
    """
    result: dict[str, str] = {}
    for value in values:
        key, _, rest = value.partition("=")
        result[key] = rest
    return result


def dedupe_str_slice(values: Iterable[str]) -> list[str]:
    """Return the strings without duplicates, keeping first occurrences in order."""
    return list(dict.fromkeys(values))