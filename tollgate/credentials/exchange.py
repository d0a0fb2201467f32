"""Credential exchanges that mint repository-scoped tokens.

:class:`GitHubAppCredentialExchange` authenticates as a GitHub App with a
short-lived RS256 JWT, finds the app installation covering the target
repository, and asks GitHub for an installation token restricted to that
single repository and the requested permissions.

The exchange makes exactly one attempt per call. Retries, caching and
single-flight coordination belong to :class:`~tollgate.credentials.broker.TokenBroker`.
"""

from __future__ import annotations

import base64
import datetime as dt
import os
import typing as typ

import httpx
import msgspec
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from tollgate.common.slug import parse_repo_slug
from tollgate.common.time import parse_github_datetime, utcnow
from tollgate.logging import get_logger, log_debug

from .errors import CredentialConfigError, CredentialExchangeError
from .models import ScopedToken

if typ.TYPE_CHECKING:
    from tollgate.common.time import Clock

    from .config import GitHubAppConfig
    from .models import Permissions

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
# GitHub rejects JWTs whose iat is in the future; backdate to absorb clock skew.
_JWT_BACKDATE = dt.timedelta(seconds=60)
_JWT_LIFETIME = dt.timedelta(minutes=9)


class CredentialExchange(typ.Protocol):
    """Obtain one fresh token for a repository and permission set."""

    async def exchange(self, repository: str, permissions: Permissions) -> ScopedToken:
        """Mint a new scoped token; raise :class:`CredentialExchangeError` on failure."""
        ...


class _InstallationResponse(msgspec.Struct, kw_only=True):
    id: int


class _AccessTokenResponse(msgspec.Struct, kw_only=True):
    token: str
    expires_at: str
    permissions: dict[str, str] = msgspec.field(default_factory=dict)


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def load_rsa_private_key(pem: str) -> rsa.RSAPrivateKey:
    """Parse a PEM RSA private key.

    Raises
    ------
    CredentialConfigError
        If the PEM cannot be parsed or is not an RSA key.

    """
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as exc:
        raise CredentialConfigError.invalid_private_key(str(exc)) from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CredentialConfigError.invalid_private_key(
            f"expected RSA key, got {type(key).__name__}"
        )
    return key


def build_app_jwt(app_id: str, private_key: rsa.RSAPrivateKey, now: dt.datetime) -> str:
    """Return a signed RS256 JWT identifying the GitHub App.

    Examples
    --------
    >>> token = build_app_jwt("12345", key, dt.datetime.now(dt.UTC))
    >>> token.count(".")
    2

    """
    header = {"alg": "RS256", "typ": "JWT"}
    claims = {
        "iat": int((now - _JWT_BACKDATE).timestamp()),
        "exp": int((now + _JWT_LIFETIME).timestamp()),
        "iss": app_id,
    }
    signing_input = (
        f"{_b64url(msgspec.json.encode(header))}.{_b64url(msgspec.json.encode(claims))}"
    )
    signature = private_key.sign(
        signing_input.encode("ascii"), padding.PKCS1v15(), hashes.SHA256()
    )
    return f"{signing_input}.{_b64url(signature)}"


class GitHubAppCredentialExchange:
    """Mint installation tokens through the GitHub App REST endpoints.

    Parameters
    ----------
    config
        App identity and API location.
    http_client
        Optional client for testing. When omitted the exchange creates and
        owns its own client.
    clock
        Time source for JWT claims.

    """

    def __init__(
        self,
        config: GitHubAppConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Parse the private key and prepare the HTTP client."""
        self._config = config
        self._private_key = load_rsa_private_key(config.private_key)
        self._clock = clock
        self._installations: dict[str, int] = {}
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "application/vnd.github+json",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def exchange(self, repository: str, permissions: Permissions) -> ScopedToken:
        """Mint a token limited to ``repository`` and ``permissions``.

        Raises
        ------
        CredentialExchangeError
            If the installation lookup or token request fails.

        """
        owner, name = parse_repo_slug(repository)
        app_jwt = build_app_jwt(self._config.app_id, self._private_key, self._clock())
        installation_id = await self._installation_id(owner, name, app_jwt)

        body = await self._request(
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            app_jwt,
            operation="token request",
            json={"repositories": [name], "permissions": dict(permissions)},
        )
        try:
            minted = msgspec.json.decode(body, type=_AccessTokenResponse)
            expires_at = parse_github_datetime(minted.expires_at)
        except (msgspec.DecodeError, ValueError) as exc:
            raise CredentialExchangeError.malformed_response(
                "token request", str(exc)
            ) from exc

        log_debug(
            logger,
            "Minted token for %s expiring %s",
            repository,
            expires_at.isoformat(),
        )
        return ScopedToken(
            token=minted.token,
            repository=repository,
            permissions=dict(minted.permissions or permissions),
            expires_at=expires_at,
        )

    async def _installation_id(self, owner: str, name: str, app_jwt: str) -> int:
        slug = f"{owner}/{name}".lower()
        cached = self._installations.get(slug)
        if cached is not None:
            return cached

        body = await self._request(
            "GET",
            f"/repos/{owner}/{name}/installation",
            app_jwt,
            operation="installation lookup",
            missing_repository=slug,
        )
        try:
            installation = msgspec.json.decode(body, type=_InstallationResponse)
        except msgspec.DecodeError as exc:
            raise CredentialExchangeError.malformed_response(
                "installation lookup", str(exc)
            ) from exc
        self._installations[slug] = installation.id
        return installation.id

    async def _request(  # noqa: PLR0913
        self,
        method: str,
        path: str,
        app_jwt: str,
        *,
        operation: str,
        json: dict[str, typ.Any] | None = None,
        missing_repository: str | None = None,
    ) -> bytes:
        try:
            response = await self._client.request(
                method,
                f"{self._config.api_url}{path}",
                headers={"Authorization": f"Bearer {app_jwt}"},
                json=json,
            )
        except httpx.HTTPError as exc:
            raise CredentialExchangeError.transport(operation, exc) from exc

        if response.status_code == _HTTP_NOT_FOUND and missing_repository is not None:
            raise CredentialExchangeError.missing_installation(missing_repository)
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise CredentialExchangeError.http_error(operation, response.status_code)
        return response.content


class StaticTokenExchange:
    """Hand out one pre-issued token for every repository.

    Intended for local development against a personal access token read
    from ``TOLLGATE_GITHUB_TOKEN``. The token is reported as valid for a day
    so the broker caches it.
    """

    def __init__(self, token: str, *, clock: Clock = utcnow) -> None:
        """Store the token."""
        if not token.strip():
            raise CredentialConfigError.missing("TOLLGATE_GITHUB_TOKEN")
        self._token = token.strip()
        self._clock = clock

    @classmethod
    def from_env(cls) -> StaticTokenExchange:
        """Read the token from ``TOLLGATE_GITHUB_TOKEN``."""
        return cls(os.environ.get("TOLLGATE_GITHUB_TOKEN", ""))

    async def exchange(self, repository: str, permissions: Permissions) -> ScopedToken:
        """Return the static token labelled for ``repository``."""
        return ScopedToken(
            token=self._token,
            repository=repository,
            permissions=dict(permissions),
            expires_at=self._clock() + dt.timedelta(days=1),
        )
