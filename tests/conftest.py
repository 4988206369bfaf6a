"""
Shared pytest fixtures and configuration for promisekit tests.

This module provides:
- Settings cache reset for test isolation
- Automatic ``unit`` marker for every test

Usage:
    Fixtures are auto-discovered by pytest.
"""

import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure promisekit package and tests._support are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from promisekit.core.settings import get_settings


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if "unit" not in markers:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """
    Drop the cached settings before and after each test.

    Tests that set ``PROMISEKIT_*`` variables with monkeypatch see them on
    the next ``get_settings()`` call, and leak nothing afterwards.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
