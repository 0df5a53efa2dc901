from __future__ import annotations

from typing import Any, cast

import pytest
from pydantic import ValidationError

from ai_resilience import CircuitState, ResilientClient
from ai_resilience.settings import ResilienceSettings
from tests.ai_resilience.support.fakes import FakeLogger


def _build_settings(**overrides: object) -> ResilienceSettings:
    return ResilienceSettings(**cast(Any, overrides))


def test_defaults_build_default_config() -> None:
    config = _build_settings().to_config()

    assert config.circuit_breaker.failure_threshold == 5
    assert config.circuit_breaker.reset_timeout == 60.0
    assert config.circuit_breaker.monitoring_period == 60.0
    assert config.retry.max_retries == 3
    assert config.retry.initial_delay == 1.0
    assert config.retry.max_delay == 30.0
    assert config.retry.backoff_multiplier == 2.0
    assert config.retry.jitter is True


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AI_RESILIENCE_FAILURE_THRESHOLD", "2")
    monkeypatch.setenv("ai_resilience_reset_timeout_seconds", "1.5")
    monkeypatch.setenv("AI_RESILIENCE_JITTER", "false")
    monkeypatch.setenv("AI_RESILIENCE_BREAKER_NAME", "  chat-completions ")

    settings = ResilienceSettings()
    config = settings.to_config()

    assert settings.breaker_name == "chat-completions"
    assert config.circuit_breaker.failure_threshold == 2
    assert config.circuit_breaker.reset_timeout == 1.5
    assert config.retry.jitter is False


def test_log_level_is_normalized() -> None:
    assert _build_settings(log_level=" debug ").log_level == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"log_level": "TRACE"},
        {"breaker_name": "   "},
        {"failure_threshold": 0},
        {"monitoring_period_seconds": 0},
        {"max_retries": -1},
        {"initial_delay_seconds": 5.0, "max_delay_seconds": 1.0},
        {"backoff_multiplier": 0.5},
    ],
)
def test_invalid_settings_raise_validation_error(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        _build_settings(**overrides)


def test_client_from_settings_uses_name_and_config() -> None:
    settings = _build_settings(breaker_name="chat", failure_threshold=7)

    client = ResilientClient.from_settings(settings, logger=FakeLogger())

    assert client.breaker.name == "chat"
    assert client.config.circuit_breaker.failure_threshold == 7
    assert client.get_circuit_state() == CircuitState.CLOSED
