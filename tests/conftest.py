# tests/conftest.py

"""Shared pytest fixtures for all catalog tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest

from src.config.settings import Settings


@pytest.fixture(autouse=True)
def instant_retries() -> Generator[None, None, None]:
    """Zero the retry backoff so failing fetches settle immediately."""
    with patch.object(Settings, "RETRY_BASE_DELAY", 0.0):
        yield
