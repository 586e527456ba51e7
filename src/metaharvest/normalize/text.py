"""Text normalization helpers shared by the field extractors."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_PUNCTUATION_RE = re.compile(r"[\s/:;,=(\[]+$")
_WORD_RE = re.compile(r"[^\W\d_]+(?:['-][^\W\d_]+)*")


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_trailing_punctuation(text: str) -> str:
    """Drop trailing separators but keep a period that ends an abbreviation-free word."""

    stripped = _TRAILING_PUNCTUATION_RE.sub("", text)
    if stripped.endswith(".") and not stripped.endswith(".."):
        stripped = stripped[:-1]
    return stripped.rstrip()


def word_count(text: str) -> int:
    """Count alphabetic words; digits and punctuation are not words."""

    return len(_WORD_RE.findall(text))


def unique(values: list[str]) -> list[str]:
    """De-duplicate while preserving first-seen order."""

    return list(dict.fromkeys(values))
