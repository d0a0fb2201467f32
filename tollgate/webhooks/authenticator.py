"""Authenticate GitHub webhook deliveries and extract validation events.

The authenticator is the only component that touches raw request bytes. A
delivery must carry a valid ``X-Hub-Signature-256`` HMAC before anything in
its body is parsed, so forged payloads never reach admission.

Replayed deliveries are accepted: GitHub redelivers the same signed body
with the same delivery id, and those must be acknowledged. Dispatch key
deduplication downstream makes replays harmless.

Usage
-----
>>> authenticator = WebhookAuthenticator(secret="s3cr3t")
>>> event = authenticator.authenticate(
...     body,
...     signature=req.get_header("X-Hub-Signature-256"),
...     event_name=req.get_header("X-GitHub-Event"),
...     delivery_id=req.get_header("X-GitHub-Delivery"),
... )

"""

from __future__ import annotations

import hashlib
import hmac
import typing as typ

import msgspec

from tollgate.common.keys import DispatchKey, normalize_sha
from tollgate.common.time import utcnow
from tollgate.logging import get_logger, log_debug, log_warning

from .errors import AuthenticationError
from .models import RELEVANT_ACTIONS, PullRequestEventPayload, ValidationEvent

if typ.TYPE_CHECKING:
    import datetime as dt

logger = get_logger(__name__)

SIGNATURE_SCHEME = "sha256"
SIGNATURE_PREFIX = f"{SIGNATURE_SCHEME}="
PULL_REQUEST_EVENT = "pull_request"


def compute_signature(secret: str, body: bytes) -> str:
    """Return the ``sha256=<hex>`` header value for ``body``."""
    return f"{SIGNATURE_PREFIX}{_hex_digest(secret, body)}"


def _hex_digest(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, header: str | None) -> None:
    """Check an HMAC-SHA256 signature header against ``body``.

    Raises
    ------
    AuthenticationError
        If the header is missing, uses another scheme, or does not match.

    """
    if not header:
        raise AuthenticationError.missing_signature()
    scheme, sep, provided = header.strip().partition("=")
    if not sep or scheme.lower() != SIGNATURE_SCHEME:
        raise AuthenticationError.unsupported_scheme(scheme)
    # Scheme name and hex digits are both case-insensitive.
    expected = _hex_digest(secret, body)
    if not hmac.compare_digest(expected.encode("ascii"), provided.lower().encode()):
        raise AuthenticationError.signature_mismatch()


class WebhookAuthenticator:
    """Turn signed GitHub deliveries into :class:`ValidationEvent` objects."""

    def __init__(self, secret: str) -> None:
        """Store the shared webhook secret."""
        if not secret:
            msg = "webhook secret must be non-empty"
            raise ValueError(msg)
        self._secret = secret

    def authenticate(  # noqa: PLR0913
        self,
        body: bytes,
        *,
        signature: str | None,
        event_name: str | None,
        delivery_id: str | None,
        received_at: dt.datetime | None = None,
    ) -> ValidationEvent | None:
        """Verify and parse one delivery.

        Parameters
        ----------
        body
            Raw request body exactly as received.
        signature
            ``X-Hub-Signature-256`` header value.
        event_name
            ``X-GitHub-Event`` header value.
        delivery_id
            ``X-GitHub-Delivery`` header value.
        received_at
            Acceptance time; defaults to now.

        Returns
        -------
        ValidationEvent | None
            The event, or ``None`` for authentic deliveries that do not need
            validation (pings, other event types, irrelevant actions).

        Raises
        ------
        AuthenticationError
            If the signature is invalid, the delivery id is missing, or the
            signed body is not a well-formed pull request event.

        """
        try:
            verify_signature(self._secret, body, signature)
        except AuthenticationError as exc:
            log_warning(
                logger,
                "Rejected delivery %s: %s",
                delivery_id or "<none>",
                exc.reason,
            )
            raise

        if not delivery_id or not delivery_id.strip():
            raise AuthenticationError.missing_delivery_id()

        if event_name != PULL_REQUEST_EVENT:
            log_debug(logger, "Ignoring %s delivery %s", event_name, delivery_id)
            return None

        try:
            payload = msgspec.json.decode(body, type=PullRequestEventPayload)
        except msgspec.DecodeError as exc:
            raise AuthenticationError.malformed_payload(str(exc)) from exc

        if payload.action not in RELEVANT_ACTIONS:
            log_debug(
                logger,
                "Ignoring pull_request.%s delivery %s",
                payload.action,
                delivery_id,
            )
            return None

        try:
            key = DispatchKey.build(
                payload.repository.full_name,
                payload.pull_request.number,
                payload.pull_request.head.sha,
            )
            previous_head_sha = (
                normalize_sha(payload.before, field="before sha")
                if payload.before
                else None
            )
        except ValueError as exc:
            raise AuthenticationError.malformed_payload(str(exc)) from exc

        branch_ref = payload.pull_request.head.ref.strip()
        if not branch_ref:
            raise AuthenticationError.malformed_payload("head ref is empty")

        return ValidationEvent(
            event_id=delivery_id.strip(),
            producer_repo=key.repo,
            pull_request_number=key.pr_number,
            head_sha=key.head_sha,
            branch_ref=branch_ref,
            received_at=received_at or utcnow(),
            previous_head_sha=previous_head_sha,
            head_updated_at=payload.pull_request.updated_at,
        )
