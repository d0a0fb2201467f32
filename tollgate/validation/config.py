"""Configuration for validator backends."""

from __future__ import annotations

import dataclasses as dc
import enum
import os

from tollgate.common.slug import normalize_repo_slug

from .errors import ValidatorConfigError

_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_EVENT_TYPE = "contract-validation"
_DEFAULT_TIMEOUT_S = 20.0


class ValidatorBackend(enum.StrEnum):
    """Supported validator backends."""

    GITHUB = "github"
    HTTP = "http"
    MOCK = "mock"


@dc.dataclass(frozen=True, slots=True)
class GitHubDispatchConfig:
    """Settings for triggering the validation workflow with repository_dispatch.

    Attributes
    ----------
    contracts_repo
        Repository holding the contracts and the validation workflow.
    api_url
        REST API base URL.
    event_type
        ``repository_dispatch`` event type the workflow listens for.
    callback_url
        Public URL of ``POST /validation-results``.
    timeout_s
        Per-request timeout.

    """

    contracts_repo: str
    api_url: str = _DEFAULT_API_URL
    event_type: str = _DEFAULT_EVENT_TYPE
    callback_url: str | None = None
    timeout_s: float = _DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls) -> GitHubDispatchConfig:
        """Read ``TOLLGATE_CONTRACTS_REPO`` and optional overrides."""
        contracts_repo = os.environ.get("TOLLGATE_CONTRACTS_REPO", "").strip()
        if not contracts_repo:
            raise ValidatorConfigError.missing(
                "TOLLGATE_CONTRACTS_REPO", ValidatorBackend.GITHUB
            )
        return cls(
            contracts_repo=normalize_repo_slug(contracts_repo),
            api_url=(
                os.environ.get("TOLLGATE_GITHUB_API_URL", "").strip() or _DEFAULT_API_URL
            ).rstrip("/"),
            event_type=(
                os.environ.get("TOLLGATE_VALIDATOR_EVENT_TYPE", "").strip()
                or _DEFAULT_EVENT_TYPE
            ),
            callback_url=os.environ.get("TOLLGATE_CALLBACK_URL", "").strip() or None,
        )


@dc.dataclass(frozen=True, slots=True)
class HttpValidatorConfig:
    """Settings for a validation service reached over HTTP.

    Attributes
    ----------
    endpoint
        URL that accepts validation requests.
    api_key
        Bearer token for the service.
    callback_url
        Public URL of ``POST /validation-results``.
    timeout_s
        Per-request timeout.

    """

    endpoint: str
    api_key: str = dc.field(repr=False)
    callback_url: str | None = None
    timeout_s: float = _DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls) -> HttpValidatorConfig:
        """Read ``TOLLGATE_VALIDATOR_ENDPOINT`` and ``TOLLGATE_VALIDATOR_API_KEY``."""
        endpoint = os.environ.get("TOLLGATE_VALIDATOR_ENDPOINT", "").strip()
        if not endpoint:
            raise ValidatorConfigError.missing(
                "TOLLGATE_VALIDATOR_ENDPOINT", ValidatorBackend.HTTP
            )
        api_key = os.environ.get("TOLLGATE_VALIDATOR_API_KEY", "").strip()
        if not api_key:
            raise ValidatorConfigError.missing(
                "TOLLGATE_VALIDATOR_API_KEY", ValidatorBackend.HTTP
            )
        return cls(
            endpoint=endpoint,
            api_key=api_key,
            callback_url=os.environ.get("TOLLGATE_CALLBACK_URL", "").strip() or None,
        )
