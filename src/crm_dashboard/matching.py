"""Shared text normalization for matching CRM field names, stage labels and tags."""

import re
import unicodedata
from typing import Any, Iterable

_SEPARATORS = re.compile(r"[-_.]")


def normalize_text(value: Any) -> str:
    """Lowercase, trim and strip diacritics; empty string for falsy input."""
    if value is None or value == "":
        return ""
    decomposed = unicodedata.normalize("NFD", str(value).lower().strip())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def clean_separators(text: str) -> str:
    """Replace hyphen, underscore and dot separators with spaces."""
    return _SEPARATORS.sub(" ", text)


def clean_key(normalized_key: str) -> str:
    """
    Cleaned form of an already-normalized field key.
    Leading '-'/'_' are dropped first, so '-valor-da-entrada' -> 'valor da entrada'.
    """
    return clean_separators(normalized_key.lstrip("-_"))


def contains_any(text: str, markers: Iterable[str]) -> bool:
    """True if any normalized marker appears in text."""
    if not text:
        return False
    return any(normalize_text(m) in text for m in markers if m)
