"""Errors raised while publishing outcomes to pull requests."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Raised when an outcome could not be published after all retries.

    The orchestrator keeps the record flagged for publication and the sweep
    retries later.
    """

    @classmethod
    def exhausted(
        cls, target: str, attempts: int, last_error: BaseException
    ) -> ReconciliationError:
        """Return an error for a publication whose attempts all failed."""
        return cls(f"could not publish to {target} after {attempts} attempt(s): {last_error}")


class SurfaceError(ReconciliationError):
    """Raised when one call to the pull request surface fails.

    Attributes
    ----------
    status_code
        HTTP status code, when one was received.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, operation: str, status_code: int) -> SurfaceError:
        """Return an error for a non-2xx response."""
        return cls(f"{operation} failed with HTTP {status_code}", status_code=status_code)

    @classmethod
    def transport(cls, operation: str, exc: BaseException) -> SurfaceError:
        """Return an error for a network failure."""
        return cls(f"{operation} failed: {type(exc).__name__}: {exc}")


class CommentNotFoundError(SurfaceError):
    """Raised when the comment being edited no longer exists."""

    @classmethod
    def for_comment(cls, comment_id: int) -> CommentNotFoundError:
        """Return an error for a deleted comment."""
        return cls(f"comment {comment_id} not found", status_code=404)
