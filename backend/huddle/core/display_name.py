"""Display-name normalization and validation for hosts and guests."""

from __future__ import annotations

import unicodedata

import regex

MIN_DISPLAY_NAME_LENGTH = 1
MAX_DISPLAY_NAME_LENGTH = 30
_ALLOWED_PATTERN = regex.compile(r"[A-Za-z0-9 _-]+")
_GRAPHEME_PATTERN = regex.compile(r"\X")


class DisplayNameValidationError(ValueError):
    """Raised when a display name violates length or charset rules."""


def normalize_display_name(raw_name: str) -> str:
    """Trim and normalize a display name to NFC form."""
    return unicodedata.normalize("NFC", raw_name.strip())


def count_graphemes(value: str) -> int:
    """Count user-visible characters using grapheme clusters."""
    return len(_GRAPHEME_PATTERN.findall(value))


def validate_display_name(name: str, *, max_length: int = MAX_DISPLAY_NAME_LENGTH) -> None:
    """Validate length in [1, max_length] and charset [A-Za-z0-9 _-]."""
    length = count_graphemes(name)
    if length < MIN_DISPLAY_NAME_LENGTH or length > max_length:
        raise DisplayNameValidationError(
            f"display name length must be {MIN_DISPLAY_NAME_LENGTH}-{max_length} characters"
        )
    if _ALLOWED_PATTERN.fullmatch(name) is None:
        raise DisplayNameValidationError(
            "display name may only contain letters, digits, spaces, '_' and '-'"
        )


def normalize_and_validate_display_name(
    raw_name: str,
    *,
    max_length: int = MAX_DISPLAY_NAME_LENGTH,
) -> str:
    """Apply trim + NFC and validate constraints."""
    normalized = normalize_display_name(raw_name)
    validate_display_name(normalized, max_length=max_length)
    return normalized
