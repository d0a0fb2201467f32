"""Scoped token model and permission helpers."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import hashlib
import types
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

type Permissions = cabc.Mapping[str, str]

# repository_dispatch needs contents:write on the target repository.
CONTRACTS_REPO_PERMISSIONS: Permissions = types.MappingProxyType(
    {"contents": "write", "metadata": "read"}
)
PRODUCER_READ_PERMISSIONS: Permissions = types.MappingProxyType(
    {"contents": "read", "metadata": "read"}
)
PRODUCER_PUBLISH_PERMISSIONS: Permissions = types.MappingProxyType(
    {
        "contents": "read",
        "metadata": "read",
        "pull_requests": "write",
        "statuses": "write",
    }
)


def permissions_digest(permissions: Permissions) -> str:
    """Return a stable hash of a permission set, independent of key order."""
    canonical = "&".join(f"{name}={level}" for name, level in sorted(permissions.items()))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dc.dataclass(frozen=True, slots=True)
class ScopedToken:
    """A short-lived credential limited to one repository and permission set.

    Attributes
    ----------
    token
        Bearer token value.
    repository
        ``owner/name`` the token is restricted to.
    permissions
        Permissions granted to the token.
    expires_at
        Expiry reported by the issuer.

    """

    token: str = dc.field(repr=False)
    repository: str
    permissions: Permissions
    expires_at: dt.datetime

    def is_fresh(self, now: dt.datetime, margin: dt.timedelta) -> bool:
        """Return whether the token stays valid for at least ``margin``."""
        return now + margin < self.expires_at

    @property
    def authorization(self) -> str:
        """Return the ``Authorization`` header value."""
        return f"token {self.token}"
