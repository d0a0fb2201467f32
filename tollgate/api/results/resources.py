"""Validator result callbacks.

``POST /validation-results`` carries the outcome of one validation run. The
body is signed with the callback secret in ``X-Tollgate-Signature-256`` using
the same ``sha256=<hex>`` scheme as GitHub webhooks.

Usage
-----
Register the resource on the Falcon app::

    app.add_route(
        "/validation-results",
        ValidationResultResource(secret=config.callback_secret, orchestrator=orchestrator),
    )

"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

from tollgate.api.errors import InvalidInputError
from tollgate.validation.models import CallbackOutcome, ValidationCallback
from tollgate.webhooks.authenticator import verify_signature

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tollgate.dispatch.orchestrator import DispatchOrchestrator

__all__ = ["CALLBACK_SIGNATURE_HEADER", "ValidationResultResource"]

CALLBACK_SIGNATURE_HEADER = "X-Tollgate-Signature-256"


class ValidationResultResource:
    """Resource accepting signed results from the validator."""

    def __init__(self, *, secret: str, orchestrator: DispatchOrchestrator) -> None:
        """Store the callback secret and orchestrator."""
        self._secret = secret
        self._orchestrator = orchestrator

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /validation-results.

        Raises
        ------
        AuthenticationError
            If the signature is missing or wrong (mapped to 401).
        InvalidInputError
            If the body is not a well-formed callback (mapped to 400).
        DispatchNotFoundError
            If the dispatch key is unknown (mapped to 404).

        """
        body = await req.stream.read()
        verify_signature(self._secret, body, req.get_header(CALLBACK_SIGNATURE_HEADER))

        try:
            callback = msgspec.json.decode(body, type=ValidationCallback)
        except msgspec.DecodeError as exc:
            raise InvalidInputError(str(exc)) from exc
        try:
            key = callback.dispatch_key.to_dispatch_key()
        except ValueError as exc:
            raise InvalidInputError(str(exc), field="dispatch_key") from exc

        if callback.outcome is CallbackOutcome.COMPLETED:
            try:
                result = callback.to_result()
            except ValueError as exc:
                raise InvalidInputError(str(exc), field="severity") from exc
            status = await self._orchestrator.complete(key, result)
        else:
            reason = callback.error or "validator reported an error"
            status = await self._orchestrator.fail(key, reason)

        resp.status = falcon.HTTP_200
        resp.media = {"status": status.value, "dispatch_key": str(key)}
