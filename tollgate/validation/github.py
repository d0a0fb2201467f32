"""Trigger the contract validation workflow through repository_dispatch."""

from __future__ import annotations

import typing as typ

import httpx

from tollgate.logging import get_logger, log_info

from .errors import InvocationError

if typ.TYPE_CHECKING:
    from .config import GitHubDispatchConfig
    from .models import ValidationRequest
    from .protocol import DispatchCredentials

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_BACKEND = "github"


class GitHubDispatchInvoker:
    """Start validation runs as ``repository_dispatch`` events.

    The contracts repository hosts the validation workflow. Each dispatch
    carries the dispatch key, branch, contract ids and a read token for the
    producer repository in ``client_payload``; the workflow reports back via
    the signed callback. GitHub returns no run id for ``repository_dispatch``,
    so the invocation id is derived from the dispatch key.
    """

    def __init__(
        self,
        config: GitHubDispatchConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Store configuration and prepare the HTTP client."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Accept": "application/vnd.github+json",
                "User-Agent": "tollgate/0.1",
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
        """Send one ``repository_dispatch`` to the contracts repository."""
        payload = {
            "event_type": self._config.event_type,
            "client_payload": {
                "dispatch_key": {
                    "repository": request.repository,
                    "pull_request": request.pull_request,
                    "head_sha": request.head_sha,
                },
                "branch_ref": request.branch_ref,
                "contracts": [contract.id for contract in request.contracts],
                "callback_url": request.callback_url or self._config.callback_url,
                "deadline_at": (
                    request.deadline_at.isoformat() if request.deadline_at else None
                ),
                "producer_token": credentials.producer_token.token,
            },
        }
        url = f"{self._config.api_url}/repos/{self._config.contracts_repo}/dispatches"
        try:
            response = await self._client.post(
                url,
                json=payload,
                headers={"Authorization": credentials.contracts_token.authorization},
            )
        except httpx.HTTPError as exc:
            raise InvocationError.transport(_BACKEND, exc) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise InvocationError.http_error(_BACKEND, response.status_code)

        invocation_id = f"repository_dispatch:{request.dispatch_key}"
        log_info(
            logger,
            "Dispatched %s to %s",
            request.dispatch_key,
            self._config.contracts_repo,
        )
        return invocation_id
