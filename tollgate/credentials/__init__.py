"""Cross-repository scoped credentials."""

from __future__ import annotations

from .broker import TokenBroker
from .config import BrokerConfig, GitHubAppConfig
from .errors import CredentialConfigError, CredentialError, CredentialExchangeError
from .exchange import (
    CredentialExchange,
    GitHubAppCredentialExchange,
    StaticTokenExchange,
    build_app_jwt,
    load_rsa_private_key,
)
from .factory import create_credential_exchange
from .models import (
    CONTRACTS_REPO_PERMISSIONS,
    PRODUCER_PUBLISH_PERMISSIONS,
    PRODUCER_READ_PERMISSIONS,
    Permissions,
    ScopedToken,
    permissions_digest,
)

__all__ = [
    "CONTRACTS_REPO_PERMISSIONS",
    "PRODUCER_PUBLISH_PERMISSIONS",
    "PRODUCER_READ_PERMISSIONS",
    "BrokerConfig",
    "CredentialConfigError",
    "CredentialError",
    "CredentialExchange",
    "CredentialExchangeError",
    "GitHubAppConfig",
    "GitHubAppCredentialExchange",
    "Permissions",
    "ScopedToken",
    "StaticTokenExchange",
    "TokenBroker",
    "build_app_jwt",
    "create_credential_exchange",
    "load_rsa_private_key",
    "permissions_digest",
]
