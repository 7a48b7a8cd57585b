"""
Shared pytest fixtures for the retry_subscription library tests.

This module provides:
- Deterministic jitter (fixed_random)
- Tracing fixtures (mock_tracer)
- Error hook recorder (on_error)
"""

from __future__ import annotations

import random

import pytest

from retry_subscription.observability import MockTracer


class ErrorRecorder:
    """Records on_error calls as (error, attempt, delay_ms) tuples."""

    def __init__(self) -> None:
        self.calls: list[tuple[BaseException, int | None, int | None]] = []

    def __call__(self, error: BaseException, attempt: int | None, delay_ms: int | None) -> None:
        self.calls.append((error, attempt, delay_ms))

    @property
    def signatures(self) -> list[tuple[str, int | None, int | None]]:
        """Calls with the error replaced by its message, for easy assertions."""
        return [(str(error), attempt, delay_ms) for error, attempt, delay_ms in self.calls]


@pytest.fixture
def fixed_random(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin the jitter draw at its midpoint (0.5)."""
    monkeypatch.setattr(random, "random", lambda: 0.5)


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Create a tracer that records spans."""
    return MockTracer()


@pytest.fixture
def on_error() -> ErrorRecorder:
    """Create an on_error hook that records its calls."""
    return ErrorRecorder()
