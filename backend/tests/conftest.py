"""Shared fixtures for session service tests."""

from __future__ import annotations

import os

import pytest

TEST_JWT_SECRET = "huddle-test-secret-key-32-bytes-minimum"

# huddle.runtime loads settings at import time.
os.environ.setdefault("HUDDLE_JWT_SECRET", TEST_JWT_SECRET)

from huddle.core.config import Settings  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    """Settings with test-friendly defaults."""
    return Settings(huddle_jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
def create_payload() -> dict[str, str]:
    """Default create-session body used by API tests."""
    return {"hostName": "Alice"}
