"""Shared-secret configuration for inbound webhooks and callbacks."""

from __future__ import annotations

import dataclasses as dc
import os

from .errors import WebhookConfigError


@dc.dataclass(frozen=True, slots=True)
class WebhookConfig:
    """Secrets used to authenticate inbound requests.

    Attributes
    ----------
    webhook_secret
        Secret configured on the GitHub App webhook. Also signs contract
        reload requests.
    callback_secret
        Secret the validator uses to sign result callbacks. Defaults to the
        webhook secret when unset.

    """

    webhook_secret: str
    callback_secret: str

    def __repr__(self) -> str:
        """Hide secret values."""
        return "WebhookConfig(webhook_secret=***, callback_secret=***)"

    @classmethod
    def from_env(cls) -> WebhookConfig:
        """Read ``TOLLGATE_WEBHOOK_SECRET`` and ``TOLLGATE_CALLBACK_SECRET``.

        Raises
        ------
        WebhookConfigError
            If the webhook secret is missing or blank.

        """
        webhook_secret = os.environ.get("TOLLGATE_WEBHOOK_SECRET", "").strip()
        if not webhook_secret:
            raise WebhookConfigError.missing_secret("TOLLGATE_WEBHOOK_SECRET")
        callback_secret = (
            os.environ.get("TOLLGATE_CALLBACK_SECRET", "").strip() or webhook_secret
        )
        return cls(webhook_secret=webhook_secret, callback_secret=callback_secret)
