from __future__ import annotations

import pytest

from tests.ai_resilience.support.fakes import FakeClock, FakeLogger


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a manual clock whose sleep advances time without waiting."""
    return FakeClock()
