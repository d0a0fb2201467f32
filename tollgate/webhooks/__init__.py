"""GitHub webhook authentication and event extraction."""

from __future__ import annotations

from .authenticator import (
    SIGNATURE_PREFIX,
    WebhookAuthenticator,
    compute_signature,
    verify_signature,
)
from .config import WebhookConfig
from .errors import AuthenticationError, WebhookConfigError, WebhookError
from .models import PullRequestAction, PullRequestEventPayload, ValidationEvent

__all__ = [
    "SIGNATURE_PREFIX",
    "AuthenticationError",
    "PullRequestAction",
    "PullRequestEventPayload",
    "ValidationEvent",
    "WebhookAuthenticator",
    "WebhookConfig",
    "WebhookConfigError",
    "WebhookError",
    "compute_signature",
    "verify_signature",
]
