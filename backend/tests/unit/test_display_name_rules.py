"""Display-name normalization, length and charset rules."""

from __future__ import annotations

import pytest

from huddle.core.display_name import DisplayNameValidationError
from huddle.core.display_name import normalize_and_validate_display_name


def test_display_name_is_trimmed() -> None:
    """Input: "  Alice  " -> Output: "Alice"."""
    assert normalize_and_validate_display_name("  Alice  ") == "Alice"


def test_display_name_allows_space_underscore_and_dash() -> None:
    """Input: "Bob_the-Builder 2" -> Output: accepted unchanged."""
    assert normalize_and_validate_display_name("Bob_the-Builder 2") == "Bob_the-Builder 2"


def test_display_name_of_30_characters_is_accepted() -> None:
    """Input: 30 chars -> Output: normalized name."""
    assert normalize_and_validate_display_name("a" * 30) == "a" * 30


def test_display_name_over_30_characters_is_rejected() -> None:
    """Input: 31 chars -> Output: validation error."""
    with pytest.raises(DisplayNameValidationError):
        normalize_and_validate_display_name("a" * 31)


def test_display_name_respects_custom_max_length() -> None:
    """Input: 6 chars with max_length=5 -> Output: validation error."""
    with pytest.raises(DisplayNameValidationError):
        normalize_and_validate_display_name("abcdef", max_length=5)


def test_blank_display_name_after_trim_is_rejected() -> None:
    """Input: blank name -> Output: validation error."""
    with pytest.raises(DisplayNameValidationError):
        normalize_and_validate_display_name("   ")


@pytest.mark.parametrize("raw_name", ["<script>", "Alice!", "café", "a.b", "tab\tname"])
def test_display_name_outside_charset_is_rejected(raw_name: str) -> None:
    """Input: name with disallowed characters -> Output: validation error."""
    with pytest.raises(DisplayNameValidationError):
        normalize_and_validate_display_name(raw_name)
