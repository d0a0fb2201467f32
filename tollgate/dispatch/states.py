"""Dispatch record lifecycle."""

from __future__ import annotations

import enum
import types


class DispatchState(enum.StrEnum):
    """Lifecycle of one dispatch key.

    ``PENDING -> DISPATCHING -> RUNNING -> {COMPLETED, FAILED}``. Any record
    can become ``SUPERSEDED`` once a newer head commit is admitted for the
    same pull request, and a head that arrives after its successor is
    stored as ``SUPERSEDED`` from the start.
    """

    PENDING = "pending"
    DISPATCHING = "dispatching"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SUPERSEDED = "superseded"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further work happens for this record."""
        return self in _TERMINAL

    @property
    def is_in_flight(self) -> bool:
        """Return whether an external run may be in progress."""
        return self in _IN_FLIGHT


_TERMINAL = frozenset(
    {DispatchState.COMPLETED, DispatchState.FAILED, DispatchState.SUPERSEDED}
)
_IN_FLIGHT = frozenset({DispatchState.DISPATCHING, DispatchState.RUNNING})

ALLOWED_TRANSITIONS: types.MappingProxyType[DispatchState, frozenset[DispatchState]] = (
    types.MappingProxyType(
        {
            DispatchState.PENDING: frozenset(
                {
                    DispatchState.DISPATCHING,
                    DispatchState.COMPLETED,
                    DispatchState.FAILED,
                    DispatchState.SUPERSEDED,
                }
            ),
            DispatchState.DISPATCHING: frozenset(
                {
                    DispatchState.RUNNING,
                    DispatchState.COMPLETED,
                    DispatchState.FAILED,
                    DispatchState.SUPERSEDED,
                }
            ),
            DispatchState.RUNNING: frozenset(
                {
                    DispatchState.COMPLETED,
                    DispatchState.FAILED,
                    DispatchState.SUPERSEDED,
                }
            ),
            DispatchState.COMPLETED: frozenset({DispatchState.SUPERSEDED}),
            DispatchState.FAILED: frozenset({DispatchState.SUPERSEDED}),
            DispatchState.SUPERSEDED: frozenset(),
        }
    )
)


def can_transition(current: DispatchState, target: DispatchState) -> bool:
    """Return whether ``current -> target`` is a legal transition."""
    return target in ALLOWED_TRANSITIONS[current]
