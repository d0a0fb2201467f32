"""Unit tests for webhook secret configuration."""

from __future__ import annotations

import pytest

from tollgate.webhooks.config import WebhookConfig
from tollgate.webhooks.errors import WebhookConfigError


def test_callback_secret_defaults_to_webhook_secret(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """One secret is enough for a simple deployment."""
    monkeypatch.setenv("TOLLGATE_WEBHOOK_SECRET", " s3cret ")
    monkeypatch.delenv("TOLLGATE_CALLBACK_SECRET", raising=False)

    config = WebhookConfig.from_env()

    assert config.webhook_secret == "s3cret"
    assert config.callback_secret == "s3cret"


def test_separate_callback_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    """The validator can sign with its own secret."""
    monkeypatch.setenv("TOLLGATE_WEBHOOK_SECRET", "hook")
    monkeypatch.setenv("TOLLGATE_CALLBACK_SECRET", "validator")

    assert WebhookConfig.from_env().callback_secret == "validator"


def test_missing_webhook_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tollgate refuses to accept unsigned traffic."""
    monkeypatch.setenv("TOLLGATE_WEBHOOK_SECRET", "   ")

    with pytest.raises(WebhookConfigError, match="TOLLGATE_WEBHOOK_SECRET"):
        WebhookConfig.from_env()


def test_repr_hides_secrets() -> None:
    """Secrets never appear in logs via repr."""
    config = WebhookConfig(webhook_secret="hook", callback_secret="validator")

    assert "hook" not in repr(config)
    assert "validator" not in repr(config)
