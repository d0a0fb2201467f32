"""Errors raised while obtaining scoped repository credentials."""

from __future__ import annotations


class CredentialError(Exception):
    """Raised when a scoped token cannot be obtained.

    The broker raises this once its retry budget is exhausted; the
    orchestrator treats it as a terminal failure for the dispatch.
    """

    @classmethod
    def exhausted(
        cls, repository: str, attempts: int, last_error: BaseException
    ) -> CredentialError:
        """Return an error for a repository whose exchanges all failed."""
        return cls(
            f"could not obtain a token for {repository} after "
            f"{attempts} attempt(s): {last_error}"
        )


class CredentialExchangeError(CredentialError):
    """Raised when a single credential exchange attempt fails.

    Attributes
    ----------
    status_code
        HTTP status from the token endpoint, when one was received.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, operation: str, status_code: int) -> CredentialExchangeError:
        """Return an error for a non-2xx response."""
        return cls(f"{operation} failed with HTTP {status_code}", status_code=status_code)

    @classmethod
    def transport(cls, operation: str, exc: BaseException) -> CredentialExchangeError:
        """Return an error for a network failure."""
        return cls(f"{operation} failed: {type(exc).__name__}: {exc}")

    @classmethod
    def missing_installation(cls, repository: str) -> CredentialExchangeError:
        """Return an error when the app is not installed on ``repository``."""
        return cls(
            f"GitHub App is not installed on {repository}", status_code=404
        )

    @classmethod
    def malformed_response(cls, operation: str, detail: str) -> CredentialExchangeError:
        """Return an error for an unexpected response body."""
        return cls(f"{operation} returned an unexpected body: {detail}")


class CredentialConfigError(CredentialError):
    """Raised when credential configuration is invalid."""

    @classmethod
    def missing(cls, env_var: str) -> CredentialConfigError:
        """Return an error for a required variable that is unset."""
        return cls(f"{env_var} is required")

    @classmethod
    def invalid_private_key(cls, detail: str) -> CredentialConfigError:
        """Return an error for a key that is not an RSA private key."""
        return cls(f"GitHub App private key is invalid: {detail}")
