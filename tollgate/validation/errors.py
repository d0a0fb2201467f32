"""Errors raised while invoking the external validator."""

from __future__ import annotations


class ValidatorError(Exception):
    """Base class for validator collaborator errors."""


class InvocationError(ValidatorError):
    """Raised when the validator does not accept a request.

    Attributes
    ----------
    status_code
        HTTP status code from the validator, when one was received.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, backend: str, status_code: int) -> InvocationError:
        """Return an error for a non-2xx response."""
        return cls(f"{backend} validator HTTP {status_code}", status_code=status_code)

    @classmethod
    def transport(cls, backend: str, exc: BaseException) -> InvocationError:
        """Return an error for a network failure."""
        return cls(f"{backend} validator unreachable: {type(exc).__name__}: {exc}")


class ValidatorConfigError(ValidatorError):
    """Raised when validator configuration is invalid."""

    @classmethod
    def missing_backend(cls) -> ValidatorConfigError:
        """Return an error when no backend is configured."""
        return cls("TOLLGATE_VALIDATOR_BACKEND is required")

    @classmethod
    def invalid_backend(cls, backend: str) -> ValidatorConfigError:
        """Return an error for an unknown backend name."""
        return cls(
            f"Invalid TOLLGATE_VALIDATOR_BACKEND {backend!r}; "
            "expected 'github', 'http' or 'mock'"
        )

    @classmethod
    def missing(cls, env_var: str, backend: str) -> ValidatorConfigError:
        """Return an error for a setting the backend requires."""
        return cls(f"{env_var} is required for the {backend} validator backend")
