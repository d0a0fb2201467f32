"""Unit tests for dispatch configuration."""

from __future__ import annotations

import datetime as dt

import pytest

from tollgate.dispatch import DispatchConfig, DispatchConfigError, DispatchMode


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TOLLGATE_DISPATCH_MAX_ATTEMPTS",
        "TOLLGATE_BACKOFF_BASE_S",
        "TOLLGATE_DISPATCH_TIMEOUT_S",
        "TOLLGATE_DISPATCH_RESUME_AFTER_S",
        "TOLLGATE_CALLBACK_URL",
        "TOLLGATE_DISPATCH_MODE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TOLLGATE_CONTRACTS_REPO", "Acme/Data-Contracts")


def test_defaults() -> None:
    """Only the contracts repository is required."""
    config = DispatchConfig.from_env()

    assert config.contracts_repo == "acme/data-contracts"
    assert config.retry.max_attempts == 3
    assert config.run_timeout == dt.timedelta(minutes=30)
    assert config.resume_after == dt.timedelta(minutes=5)
    assert config.callback_url is None
    assert config.mode is DispatchMode.TASK


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every knob is read from its environment variable."""
    monkeypatch.setenv("TOLLGATE_DISPATCH_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("TOLLGATE_DISPATCH_TIMEOUT_S", "600")
    monkeypatch.setenv("TOLLGATE_DISPATCH_RESUME_AFTER_S", "30")
    monkeypatch.setenv("TOLLGATE_CALLBACK_URL", "https://tollgate.example.com/validation-results")
    monkeypatch.setenv("TOLLGATE_DISPATCH_MODE", "Dramatiq")

    config = DispatchConfig.from_env()

    assert config.retry.max_attempts == 5
    assert config.run_timeout == dt.timedelta(minutes=10)
    assert config.resume_after == dt.timedelta(seconds=30)
    assert config.callback_url == "https://tollgate.example.com/validation-results"
    assert config.mode is DispatchMode.DRAMATIQ


def test_missing_contracts_repo(monkeypatch: pytest.MonkeyPatch) -> None:
    """Without a contracts repository nothing can be dispatched."""
    monkeypatch.delenv("TOLLGATE_CONTRACTS_REPO")

    with pytest.raises(DispatchConfigError, match="TOLLGATE_CONTRACTS_REPO is required"):
        DispatchConfig.from_env()


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("TOLLGATE_DISPATCH_TIMEOUT_S", "soon", "must be an integer"),
        ("TOLLGATE_DISPATCH_RESUME_AFTER_S", "0", "must be positive"),
        ("TOLLGATE_DISPATCH_MODE", "celery", "must be 'task' or 'dramatiq'"),
    ],
)
def test_invalid_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
) -> None:
    """Malformed settings fail fast at startup."""
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=message):
        DispatchConfig.from_env()
