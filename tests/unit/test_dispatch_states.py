"""Unit tests for the dispatch lifecycle and per-key locks."""

from __future__ import annotations

import asyncio

import pytest

from tollgate.dispatch import ALLOWED_TRANSITIONS, DispatchState, KeyedLocks, can_transition


def test_terminal_states_only_allow_supersession() -> None:
    """Completed and failed records can only be superseded."""
    for state in DispatchState:
        if state.is_terminal and state is not DispatchState.SUPERSEDED:
            assert ALLOWED_TRANSITIONS[state] == {DispatchState.SUPERSEDED}
    assert ALLOWED_TRANSITIONS[DispatchState.SUPERSEDED] == frozenset()


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (DispatchState.PENDING, DispatchState.DISPATCHING, True),
        (DispatchState.DISPATCHING, DispatchState.RUNNING, True),
        (DispatchState.RUNNING, DispatchState.COMPLETED, True),
        (DispatchState.RUNNING, DispatchState.FAILED, True),
        (DispatchState.RUNNING, DispatchState.PENDING, False),
        (DispatchState.COMPLETED, DispatchState.RUNNING, False),
        (DispatchState.SUPERSEDED, DispatchState.COMPLETED, False),
    ],
)
def test_can_transition(
    current: DispatchState,
    target: DispatchState,
    *,
    allowed: bool,
) -> None:
    """Records only move forward through the lifecycle."""
    assert can_transition(current, target) is allowed


def test_in_flight_states() -> None:
    """Only dispatching and running records have an external run."""
    assert {s for s in DispatchState if s.is_in_flight} == {
        DispatchState.DISPATCHING,
        DispatchState.RUNNING,
    }


@pytest.mark.asyncio
async def test_keyed_locks_serialise_one_key() -> None:
    """Holders of the same key run one after another."""
    locks: KeyedLocks[str] = KeyedLocks()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("acme/checkout-service#42"):
            order.append(f"{name}:in")
            await asyncio.sleep(0)
            order.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a:in", "a:out", "b:in", "b:out"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_keyed_locks_do_not_block_other_keys() -> None:
    """Different keys never wait on each other."""
    locks: KeyedLocks[int] = KeyedLocks()

    async with locks.hold(1):
        assert locks.locked(1)
        assert not locks.locked(2)
        async with locks.hold(2):
            assert len(locks) == 2

    assert not locks.locked(1)
    assert len(locks) == 0
