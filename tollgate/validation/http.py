"""Submit validation requests to a standalone validation service."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from .errors import InvocationError

if typ.TYPE_CHECKING:
    from .config import HttpValidatorConfig
    from .models import ValidationRequest
    from .protocol import DispatchCredentials

_HTTP_ERROR_STATUS_THRESHOLD = 400
_BACKEND = "http"


class _Accepted(msgspec.Struct, kw_only=True):
    invocation_id: str


class HttpValidationInvoker:
    """POST validation requests to a service that calls back when done.

    Parameters
    ----------
    config
        Endpoint and API key.
    http_client
        Optional client for testing; otherwise the invoker owns one.

    """

    def __init__(
        self,
        config: HttpValidatorConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Store configuration and prepare the HTTP client."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def invoke(
        self,
        request: ValidationRequest,
        *,
        credentials: DispatchCredentials,
    ) -> str:
        """Submit ``request`` and return the service's invocation id."""
        if request.callback_url is None and self._config.callback_url is not None:
            request = msgspec.structs.replace(
                request, callback_url=self._config.callback_url
            )
        body = msgspec.to_builtins(request)
        body["producer_token"] = credentials.producer_token.token
        try:
            response = await self._client.post(
                self._config.endpoint,
                content=msgspec.json.encode(body),
                headers={"Authorization": f"Bearer {self._config.api_key}"},
            )
        except httpx.HTTPError as exc:
            raise InvocationError.transport(_BACKEND, exc) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise InvocationError.http_error(_BACKEND, response.status_code)

        try:
            accepted = msgspec.json.decode(response.content, type=_Accepted)
        except msgspec.DecodeError as exc:
            msg = f"{_BACKEND} validator returned an unexpected body: {exc}"
            raise InvocationError(msg, status_code=response.status_code) from exc
        return accepted.invocation_id
