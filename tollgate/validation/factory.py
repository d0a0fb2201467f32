"""Factory for creating ValidationInvoker implementations from the environment."""

from __future__ import annotations

import os
import typing as typ

from .config import ValidatorBackend
from .errors import ValidatorConfigError
from .mock import MockValidationInvoker

if typ.TYPE_CHECKING:
    from .protocol import ValidationInvoker


def create_validation_invoker() -> ValidationInvoker:
    """Create a validator client based on ``TOLLGATE_VALIDATOR_BACKEND``.

    ``github`` also reads ``TOLLGATE_CONTRACTS_REPO``; ``http`` reads
    ``TOLLGATE_VALIDATOR_ENDPOINT`` and ``TOLLGATE_VALIDATOR_API_KEY``; both
    read the optional ``TOLLGATE_CALLBACK_URL``.

    Raises
    ------
    ValidatorConfigError
        If the backend is missing or unknown, or its settings are incomplete.

    Examples
    --------
    >>> import os
    >>> os.environ["TOLLGATE_VALIDATOR_BACKEND"] = "mock"
    >>> isinstance(create_validation_invoker(), MockValidationInvoker)
    True

    """
    raw_backend = os.environ.get("TOLLGATE_VALIDATOR_BACKEND")
    if raw_backend is None:
        raise ValidatorConfigError.missing_backend()

    try:
        backend = ValidatorBackend(raw_backend.strip().lower())
    except ValueError as exc:
        raise ValidatorConfigError.invalid_backend(raw_backend) from exc

    if backend is ValidatorBackend.MOCK:
        return MockValidationInvoker()

    if backend is ValidatorBackend.GITHUB:
        from .config import GitHubDispatchConfig
        from .github import GitHubDispatchInvoker

        return GitHubDispatchInvoker(GitHubDispatchConfig.from_env())

    from .config import HttpValidatorConfig
    from .http import HttpValidationInvoker

    return HttpValidationInvoker(HttpValidatorConfig.from_env())
