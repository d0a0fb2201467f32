"""Configuration for the GitHub App exchange and the token broker."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os
from pathlib import Path

from tollgate.common.retry import RetryPolicy

from .errors import CredentialConfigError

_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 20.0
_DEFAULT_REFRESH_MARGIN_S = 120


@dc.dataclass(frozen=True, slots=True)
class GitHubAppConfig:
    """Identity of the GitHub App that mints installation tokens.

    Attributes
    ----------
    app_id
        Numeric GitHub App id, used as the JWT issuer.
    private_key
        PEM-encoded RSA private key for the app.
    api_url
        REST API base URL; override for GitHub Enterprise Server.
    timeout_s
        Per-request timeout.
    user_agent
        ``User-Agent`` header sent to GitHub.

    """

    app_id: str
    private_key: str = dc.field(repr=False)
    api_url: str = _DEFAULT_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = "tollgate/0.1"

    @classmethod
    def from_env(cls) -> GitHubAppConfig:
        """Build configuration from environment variables.

        Reads ``TOLLGATE_GITHUB_APP_ID``, the key from either
        ``TOLLGATE_GITHUB_APP_PRIVATE_KEY`` or the file named by
        ``TOLLGATE_GITHUB_APP_PRIVATE_KEY_PATH``, and the optional
        ``TOLLGATE_GITHUB_API_URL``.

        Raises
        ------
        CredentialConfigError
            If the app id or private key is missing.

        """
        app_id = os.environ.get("TOLLGATE_GITHUB_APP_ID", "").strip()
        if not app_id:
            raise CredentialConfigError.missing("TOLLGATE_GITHUB_APP_ID")

        private_key = os.environ.get("TOLLGATE_GITHUB_APP_PRIVATE_KEY", "").strip()
        if not private_key:
            key_path = os.environ.get("TOLLGATE_GITHUB_APP_PRIVATE_KEY_PATH", "").strip()
            if not key_path:
                raise CredentialConfigError.missing("TOLLGATE_GITHUB_APP_PRIVATE_KEY")
            private_key = Path(key_path).read_text(encoding="utf-8")

        api_url = os.environ.get("TOLLGATE_GITHUB_API_URL", "").strip() or _DEFAULT_API_URL
        return cls(app_id=app_id, private_key=private_key, api_url=api_url.rstrip("/"))


@dc.dataclass(frozen=True, slots=True)
class BrokerConfig:
    """Cache and retry settings for :class:`TokenBroker`.

    Attributes
    ----------
    refresh_margin
        Tokens expiring sooner than this are refreshed before use.
    retry
        Backoff policy for failed exchanges.

    """

    refresh_margin: dt.timedelta = dt.timedelta(seconds=_DEFAULT_REFRESH_MARGIN_S)
    retry: RetryPolicy = dc.field(default_factory=RetryPolicy)

    @classmethod
    def from_env(cls) -> BrokerConfig:
        """Read ``TOLLGATE_TOKEN_REFRESH_MARGIN_S`` and ``TOLLGATE_TOKEN_MAX_ATTEMPTS``."""
        raw_margin = os.environ.get("TOLLGATE_TOKEN_REFRESH_MARGIN_S", "").strip()
        try:
            margin = int(raw_margin) if raw_margin else _DEFAULT_REFRESH_MARGIN_S
        except ValueError as exc:
            msg = f"TOLLGATE_TOKEN_REFRESH_MARGIN_S must be an integer, got: {raw_margin!r}"
            raise ValueError(msg) from exc
        if margin < 0:
            msg = f"TOLLGATE_TOKEN_REFRESH_MARGIN_S must not be negative, got: {margin}"
            raise ValueError(msg)
        return cls(
            refresh_margin=dt.timedelta(seconds=margin),
            retry=RetryPolicy.from_env("TOLLGATE_TOKEN"),
        )
