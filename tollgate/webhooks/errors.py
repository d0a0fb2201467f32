"""Webhook authentication errors."""

from __future__ import annotations


class WebhookError(Exception):
    """Base class for webhook intake errors."""


class AuthenticationError(WebhookError):
    """Raised when an inbound delivery cannot be trusted.

    Authentication failures never reach admission, so an untrusted payload
    cannot create or mutate dispatch state.

    Attributes
    ----------
    reason
        Short machine-friendly reason used in logs and HTTP responses.

    """

    def __init__(self, message: str, *, reason: str) -> None:
        """Initialise with a message and a short reason code."""
        self.reason = reason
        super().__init__(message)

    @classmethod
    def missing_signature(cls) -> AuthenticationError:
        """Return an error for a request without a signature header."""
        return cls("signature header is missing", reason="missing_signature")

    @classmethod
    def unsupported_scheme(cls, scheme: str) -> AuthenticationError:
        """Return an error for a signature that is not ``sha256=``."""
        return cls(
            f"unsupported signature scheme {scheme!r}", reason="unsupported_scheme"
        )

    @classmethod
    def signature_mismatch(cls) -> AuthenticationError:
        """Return an error when the HMAC digest does not match."""
        return cls("signature does not match payload", reason="signature_mismatch")

    @classmethod
    def missing_delivery_id(cls) -> AuthenticationError:
        """Return an error for a delivery without ``X-GitHub-Delivery``."""
        return cls("delivery id header is missing", reason="missing_delivery_id")

    @classmethod
    def malformed_payload(cls, detail: str) -> AuthenticationError:
        """Return an error for a signed body that is not a usable event."""
        return cls(f"malformed payload: {detail}", reason="malformed_payload")


class WebhookConfigError(WebhookError):
    """Raised when webhook configuration is invalid."""

    @classmethod
    def missing_secret(cls, env_var: str) -> WebhookConfigError:
        """Return an error when a shared secret is not configured."""
        return cls(f"{env_var} is required")
