"""External contract validator: request and result models plus backends."""

from __future__ import annotations

from .config import GitHubDispatchConfig, HttpValidatorConfig, ValidatorBackend
from .errors import InvocationError, ValidatorConfigError, ValidatorError
from .factory import create_validation_invoker
from .github import GitHubDispatchInvoker
from .http import HttpValidationInvoker
from .mock import MockValidationInvoker, Submission
from .models import (
    NO_APPLICABLE_CONTRACTS,
    CallbackKey,
    CallbackOutcome,
    ContractOutcome,
    ContractReference,
    Finding,
    Severity,
    ValidationCallback,
    ValidationRequest,
    ValidationResult,
)
from .protocol import DispatchCredentials, ValidationInvoker

__all__ = [
    "NO_APPLICABLE_CONTRACTS",
    "CallbackKey",
    "CallbackOutcome",
    "ContractOutcome",
    "ContractReference",
    "DispatchCredentials",
    "Finding",
    "GitHubDispatchConfig",
    "GitHubDispatchInvoker",
    "HttpValidationInvoker",
    "HttpValidatorConfig",
    "InvocationError",
    "MockValidationInvoker",
    "Severity",
    "Submission",
    "ValidationCallback",
    "ValidationInvoker",
    "ValidationRequest",
    "ValidationResult",
    "ValidatorBackend",
    "ValidatorConfigError",
    "ValidatorError",
    "create_validation_invoker",
]
