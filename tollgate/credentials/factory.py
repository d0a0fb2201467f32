"""Factory for creating credential exchanges from the environment."""

from __future__ import annotations

import os
import typing as typ

from .exchange import StaticTokenExchange

if typ.TYPE_CHECKING:
    from .exchange import CredentialExchange


def create_credential_exchange() -> CredentialExchange:
    """Return the exchange configured by the environment.

    A GitHub App is used when ``TOLLGATE_GITHUB_APP_ID`` is set; otherwise the
    personal token in ``TOLLGATE_GITHUB_TOKEN`` is served for every
    repository.

    Raises
    ------
    CredentialConfigError
        If neither an app nor a static token is configured.

    """
    if os.environ.get("TOLLGATE_GITHUB_APP_ID", "").strip():
        from .config import GitHubAppConfig
        from .exchange import GitHubAppCredentialExchange

        return GitHubAppCredentialExchange(GitHubAppConfig.from_env())
    return StaticTokenExchange.from_env()
