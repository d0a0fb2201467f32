"""Admission of validation events by dispatch key.

Admission is the single place where dispatch records are created. It runs
under the pull request's lock, so for one PR the decision to create a record
and the supersession of its older siblings happen as one step. Separate
processes can still race; the unique constraint on the dispatch key turns
the loser's insert into an :class:`IntegrityError`, after which the loser
re-reads the winning row and reports a duplicate.

Deliveries can arrive out of order, so "newer" is decided from the payload
rather than from arrival: a ``synchronize`` delivery names the head it
replaced, and every delivery carries the pull request's ``updated_at``. A
head that an existing sibling is known to follow is recorded as superseded
on arrival and never dispatched. When the payload gives no ordering, arrival
order decides.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tollgate.common.time import utcnow

from .errors import DispatchPersistError
from .locks import KeyedLocks
from .states import DispatchState
from .storage import DispatchRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tollgate.common.keys import DispatchKey
    from tollgate.common.time import Clock
    from tollgate.webhooks.models import ValidationEvent

type PullRequestLocks = KeyedLocks[tuple[str, int]]


class AdmissionDecision(enum.StrEnum):
    """What admission decided for an event."""

    ADMITTED = "admitted"
    DUPLICATE = "duplicate"
    SUPERSEDED = "superseded"


@dc.dataclass(frozen=True, slots=True)
class AdmissionResult:
    """Outcome of :meth:`DispatchDeduplicator.admit`.

    Attributes
    ----------
    decision
        Whether a record was created, already existed, or is stale.
    record
        The record for the event's dispatch key.
    superseded
        Keys of sibling records this admission superseded.
    superseded_by
        For a stale head, the newer sibling that outranks it.

    """

    decision: AdmissionDecision
    record: DispatchRecord
    superseded: tuple[DispatchKey, ...] = ()
    superseded_by: DispatchKey | None = None


async def load_record(session: AsyncSession, key: DispatchKey) -> DispatchRecord | None:
    """Return the record for ``key`` or ``None``."""
    stmt = select(DispatchRecord).where(
        DispatchRecord.repo == key.repo,
        DispatchRecord.pr_number == key.pr_number,
        DispatchRecord.head_sha == key.head_sha,
    )
    return await session.scalar(stmt)


def _is_older(event: ValidationEvent, sibling: DispatchRecord) -> bool:
    """Return whether the payloads show ``event``'s head predates ``sibling``'s."""
    if sibling.previous_head_sha == event.head_sha:
        return True
    if event.previous_head_sha == sibling.head_sha:
        return False
    if event.head_updated_at is None or sibling.head_updated_at is None:
        return False
    return event.head_updated_at < sibling.head_updated_at


def _classify(record: DispatchRecord) -> AdmissionResult:
    if record.dispatch_state is DispatchState.SUPERSEDED:
        return AdmissionResult(decision=AdmissionDecision.SUPERSEDED, record=record)
    return AdmissionResult(decision=AdmissionDecision.DUPLICATE, record=record)


class DispatchDeduplicator:
    """Create at most one dispatch record per key and supersede older heads.

    Parameters
    ----------
    session_factory
        Session factory created with ``expire_on_commit=False`` so returned
        records stay readable after the session closes.
    locks
        Per-PR lock registry shared with the orchestrator.
    clock
        Time source for timestamps.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        locks: PullRequestLocks | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Store collaborators."""
        self._session_factory = session_factory
        self.locks: PullRequestLocks = locks if locks is not None else KeyedLocks()
        self._clock = clock

    async def admit(self, event: ValidationEvent) -> AdmissionResult:
        """Admit ``event`` or classify it as a duplicate or stale delivery.

        Raises
        ------
        DispatchPersistError
            If the insert conflicts but the conflicting row cannot be read.

        """
        key = event.dispatch_key
        async with self.locks.hold(key.pull_request), self._session_factory() as session:
            existing = await load_record(session, key)
            if existing is not None:
                return _classify(existing)

            now = self._clock()
            siblings = await _siblings(session, key)
            newer = next((s for s in siblings if _is_older(event, s)), None)
            if newer is None:
                superseded = _supersede(siblings, now)
                state = DispatchState.PENDING
            else:
                superseded = ()
                state = DispatchState.SUPERSEDED
            record = DispatchRecord(
                repo=key.repo,
                pr_number=key.pr_number,
                head_sha=key.head_sha,
                event_id=event.event_id,
                branch_ref=event.branch_ref,
                previous_head_sha=event.previous_head_sha,
                head_updated_at=event.head_updated_at,
                state=state.value,
                attempts=0,
                created_at=now,
                updated_at=now,
            )
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                existing = await load_record(session, key)
                if existing is None:
                    raise DispatchPersistError.admission_conflict(key) from exc
                return _classify(existing)

            if newer is not None:
                return AdmissionResult(
                    decision=AdmissionDecision.SUPERSEDED,
                    record=record,
                    superseded_by=newer.key,
                )
            return AdmissionResult(
                decision=AdmissionDecision.ADMITTED,
                record=record,
                superseded=superseded,
            )


async def _siblings(session: AsyncSession, key: DispatchKey) -> list[DispatchRecord]:
    stmt = select(DispatchRecord).where(
        DispatchRecord.repo == key.repo,
        DispatchRecord.pr_number == key.pr_number,
        DispatchRecord.head_sha != key.head_sha,
    )
    return list(await session.scalars(stmt))


def _supersede(
    siblings: list[DispatchRecord], now: dt.datetime
) -> tuple[DispatchKey, ...]:
    live = [s for s in siblings if s.dispatch_state is not DispatchState.SUPERSEDED]
    for sibling in live:
        sibling.transition_to(DispatchState.SUPERSEDED, now)
        sibling.publish_pending = False
    return tuple(sibling.key for sibling in live)
