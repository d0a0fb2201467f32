"""Dispatch orchestration errors."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from tollgate.common.keys import DispatchKey

    from .states import DispatchState


class DispatchError(Exception):
    """Base class for dispatch orchestration errors."""


class DispatchNotFoundError(DispatchError):
    """Raised when a dispatch key has no record.

    Attributes
    ----------
    key
        The key that was looked up.

    """

    def __init__(self, key: DispatchKey) -> None:
        """Record the missing key."""
        self.key = key
        super().__init__(f"no dispatch record for {key}")


class InvalidTransitionError(DispatchError):
    """Raised when a record is asked to move to a state it cannot reach."""

    def __init__(
        self, key: DispatchKey, current: DispatchState, target: DispatchState
    ) -> None:
        """Describe the rejected transition."""
        self.key = key
        self.current = current
        self.target = target
        super().__init__(f"{key}: cannot move from {current} to {target}")


class DispatchTimeoutError(DispatchError):
    """Raised or recorded when a validation run outlives its deadline."""

    @classmethod
    def deadline_passed(cls, key: DispatchKey, deadline: dt.datetime) -> DispatchTimeoutError:
        """Return an error for a run whose deadline has elapsed."""
        return cls(f"{key}: validation did not finish by {deadline.isoformat()}")


class DispatchPersistError(DispatchError):
    """Raised when a record cannot be written or re-read after a conflict."""

    @classmethod
    def admission_conflict(cls, key: DispatchKey) -> DispatchPersistError:
        """Return an error for a unique-key conflict with no visible winner."""
        return cls(f"{key}: admission conflicted but no record was found")


class DispatchConfigError(DispatchError):
    """Raised when dispatch configuration is invalid."""

    @classmethod
    def missing(cls, env_var: str) -> DispatchConfigError:
        """Return an error for a required variable that is unset."""
        return cls(f"{env_var} is required")


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")
