# tests/conftest.py
"""
Shared pytest fixtures for the botsbrain test suite.
"""

import logging

import pytest

from botsbrain import logging_config


class FakeClock:
    """Manually advanced time source for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reset_logging():
    """Undo handlers and component levels set by configure_logging."""
    touched = ("botsbrain", "asyncpg", "redis", "asyncio", "test.component")
    saved_levels = {name: logging.getLogger(name).level for name in touched}
    root_level = logging.getLogger().level
    logging_config.reset_logging()
    yield
    logging_config.reset_logging()
    logging.getLogger().setLevel(root_level)
    for name, level in saved_levels.items():
        logging.getLogger(name).setLevel(level)
