"""Configuration for publishing outcomes to pull requests."""

from __future__ import annotations

import dataclasses as dc
import os

from tollgate.common.retry import RetryPolicy

_DEFAULT_CONTEXT = "tollgate/data-contracts"
_DEFAULT_API_URL = "https://api.github.com"


@dc.dataclass(frozen=True, slots=True)
class ReconcilerConfig:
    """Publication settings.

    Attributes
    ----------
    retry
        Attempt budget and backoff for surface calls.
    status_context
        Commit status context shown in the PR checks list.
    details_url
        Optional link attached to commit statuses.

    """

    retry: RetryPolicy = dc.field(default_factory=RetryPolicy)
    status_context: str = _DEFAULT_CONTEXT
    details_url: str | None = None

    @classmethod
    def from_env(cls) -> ReconcilerConfig:
        """Read ``TOLLGATE_PUBLISH_MAX_ATTEMPTS`` and optional overrides."""
        return cls(
            retry=RetryPolicy.from_env("TOLLGATE_PUBLISH"),
            status_context=(
                os.environ.get("TOLLGATE_STATUS_CONTEXT", "").strip() or _DEFAULT_CONTEXT
            ),
            details_url=os.environ.get("TOLLGATE_STATUS_DETAILS_URL", "").strip() or None,
        )


@dc.dataclass(frozen=True, slots=True)
class GitHubSurfaceConfig:
    """Location of the GitHub REST API used for comments and statuses."""

    api_url: str = _DEFAULT_API_URL
    timeout_s: float = 20.0
    user_agent: str = "tollgate/0.1"

    @classmethod
    def from_env(cls) -> GitHubSurfaceConfig:
        """Read ``TOLLGATE_GITHUB_API_URL``."""
        api_url = os.environ.get("TOLLGATE_GITHUB_API_URL", "").strip() or _DEFAULT_API_URL
        return cls(api_url=api_url.rstrip("/"))
