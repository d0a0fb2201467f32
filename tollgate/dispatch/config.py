"""Configuration for dispatch orchestration.

Usage
-----
>>> config = DispatchConfig(contracts_repo="acme/data-contracts")
>>> config.run_timeout
datetime.timedelta(seconds=1800)

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import os

from tollgate.common.retry import RetryPolicy
from tollgate.common.slug import normalize_repo_slug

from .errors import DispatchConfigError

_DEFAULT_RUN_TIMEOUT_S = 30 * 60
_DEFAULT_RESUME_AFTER_S = 5 * 60


class DispatchMode(enum.StrEnum):
    """Where dispatch advancement runs."""

    TASK = "task"
    DRAMATIQ = "dramatiq"


@dc.dataclass(frozen=True, slots=True)
class DispatchConfig:
    """Timeouts, retries and routing for dispatches.

    Attributes
    ----------
    contracts_repo
        Repository hosting the contracts and the validation workflow. Tokens
        are minted for it on every dispatch.
    retry
        Attempt budget and backoff for validator invocation.
    run_timeout
        How long a run may stay dispatching or running before it is failed.
    resume_after
        How long a pending record, or a dispatching record without an
        invocation id, may sit idle before the sweep re-drives it.
    callback_url
        Public URL of ``POST /validation-results`` sent to the validator.
    mode
        Run advancement in-process (``task``) or on Dramatiq workers.

    """

    contracts_repo: str
    retry: RetryPolicy = dc.field(default_factory=RetryPolicy)
    run_timeout: dt.timedelta = dt.timedelta(seconds=_DEFAULT_RUN_TIMEOUT_S)
    resume_after: dt.timedelta = dt.timedelta(seconds=_DEFAULT_RESUME_AFTER_S)
    callback_url: str | None = None
    mode: DispatchMode = DispatchMode.TASK

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> DispatchConfig:
        """Create configuration from environment variables.

        Reads ``TOLLGATE_CONTRACTS_REPO`` (required),
        ``TOLLGATE_DISPATCH_MAX_ATTEMPTS``, ``TOLLGATE_BACKOFF_BASE_S``,
        ``TOLLGATE_DISPATCH_TIMEOUT_S``, ``TOLLGATE_DISPATCH_RESUME_AFTER_S``,
        ``TOLLGATE_CALLBACK_URL`` and ``TOLLGATE_DISPATCH_MODE``.

        Raises
        ------
        DispatchConfigError
            If the contracts repository is not configured.
        ValueError
            If a numeric variable or the mode is invalid.

        """
        contracts_repo = os.environ.get("TOLLGATE_CONTRACTS_REPO", "").strip()
        if not contracts_repo:
            raise DispatchConfigError.missing("TOLLGATE_CONTRACTS_REPO")

        raw_mode = os.environ.get("TOLLGATE_DISPATCH_MODE", "").strip().lower()
        try:
            mode = DispatchMode(raw_mode) if raw_mode else DispatchMode.TASK
        except ValueError as exc:
            msg = f"TOLLGATE_DISPATCH_MODE must be 'task' or 'dramatiq', got: {raw_mode!r}"
            raise ValueError(msg) from exc

        return cls(
            contracts_repo=normalize_repo_slug(contracts_repo),
            retry=RetryPolicy.from_env("TOLLGATE_DISPATCH"),
            run_timeout=dt.timedelta(
                seconds=cls._parse_positive_int(
                    "TOLLGATE_DISPATCH_TIMEOUT_S", _DEFAULT_RUN_TIMEOUT_S
                )
            ),
            resume_after=dt.timedelta(
                seconds=cls._parse_positive_int(
                    "TOLLGATE_DISPATCH_RESUME_AFTER_S", _DEFAULT_RESUME_AFTER_S
                )
            ),
            callback_url=os.environ.get("TOLLGATE_CALLBACK_URL", "").strip() or None,
            mode=mode,
        )
