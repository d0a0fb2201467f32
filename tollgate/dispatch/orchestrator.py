"""Drive dispatch records from admission to a published outcome.

The orchestrator owns every mutation of :class:`DispatchRecord` rows. Each
mutation for a pull request happens while holding that pull request's lock
from the shared :class:`KeyedLocks` registry, the same lock admission uses, so
supersession and result handling for one PR never interleave. External calls
(token exchange and validator invocation) run outside the lock; after each
one the record is re-read under the lock and the work is abandoned if a newer
head commit superseded it in the meantime.

Usage
-----
>>> orchestrator = DispatchOrchestrator(deps, config=DispatchConfig.from_env())
>>> admission = await orchestrator.receive(event)
>>> await orchestrator.complete(admission.record.key, result)
<CallbackStatus.COMPLETED: 'completed'>

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import enum
import typing as typ

from sqlalchemy import or_, select

from tollgate.common.retry import RetryExhaustedError, retry_async
from tollgate.common.time import utcnow
from tollgate.credentials.errors import CredentialError
from tollgate.credentials.models import (
    CONTRACTS_REPO_PERMISSIONS,
    PRODUCER_READ_PERMISSIONS,
)
from tollgate.logging import get_logger, log_warning
from tollgate.reconcile.errors import ReconciliationError
from tollgate.validation.errors import InvocationError
from tollgate.validation.models import (
    ContractReference,
    ValidationRequest,
    ValidationResult,
)
from tollgate.validation.protocol import DispatchCredentials

from .deduplicator import AdmissionDecision, DispatchDeduplicator, load_record
from .errors import DispatchNotFoundError, DispatchTimeoutError
from .observability import DispatchEventLogger
from .scheduler import TaskDispatchScheduler
from .states import DispatchState
from .storage import DispatchRecord, ValidationResultRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tollgate.common.keys import DispatchKey
    from tollgate.common.retry import Sleep
    from tollgate.common.time import Clock
    from tollgate.contracts.models import ContractDocument
    from tollgate.contracts.registry import ContractRegistry
    from tollgate.credentials.broker import TokenBroker
    from tollgate.reconcile.reconciler import PublishOutcome, ResultReconciler
    from tollgate.validation.protocol import ValidationInvoker
    from tollgate.webhooks.models import ValidationEvent

    from .config import DispatchConfig
    from .deduplicator import AdmissionResult, PullRequestLocks
    from .scheduler import DispatchScheduler

logger = get_logger(__name__)


class CallbackStatus(enum.StrEnum):
    """How a validator callback was handled."""

    COMPLETED = "completed"
    FAILED = "failed"
    DISCARDED = "discarded"
    DUPLICATE = "duplicate"


@dc.dataclass(frozen=True, slots=True)
class SweepReport:
    """Keys each part of :meth:`DispatchOrchestrator.sweep` acted on."""

    expired: tuple[DispatchKey, ...] = ()
    republished: tuple[DispatchKey, ...] = ()
    resumed: tuple[DispatchKey, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class OrchestratorDependencies:
    """Collaborators the orchestrator coordinates.

    Attributes
    ----------
    session_factory
        Session factory created with ``expire_on_commit=False``.
    registry
        Contract registry used to resolve producer repositories.
    broker
        Token broker for the contracts and producer repositories.
    invoker
        External validator.
    reconciler
        Publishes outcomes onto pull requests.

    """

    session_factory: async_sessionmaker[AsyncSession]
    registry: ContractRegistry
    broker: TokenBroker
    invoker: ValidationInvoker
    reconciler: ResultReconciler


class DispatchOrchestrator:
    """Own the lifecycle of dispatch records.

    Parameters
    ----------
    deps
        Storage, registry, credentials, validator and reconciler.
    config
        Retry budget, deadlines and callback URL.
    scheduler
        Runs :meth:`advance` after admission. Defaults to in-process tasks.
    event_logger
        Structured lifecycle logger.
    locks
        Per-PR lock registry; shared with admission.
    clock
        Time source.
    sleep
        Awaitable used between validator retries.

    """

    def __init__(  # noqa: PLR0913
        self,
        deps: OrchestratorDependencies,
        *,
        config: DispatchConfig,
        scheduler: DispatchScheduler | None = None,
        event_logger: DispatchEventLogger | None = None,
        locks: PullRequestLocks | None = None,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Wire collaborators and the admission step."""
        self._deps = deps
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._events = event_logger or DispatchEventLogger()
        self._deduplicator = DispatchDeduplicator(
            deps.session_factory, locks=locks, clock=clock
        )
        self._locks = self._deduplicator.locks
        self.scheduler: DispatchScheduler = (
            scheduler if scheduler is not None else TaskDispatchScheduler(self.advance)
        )
        self._advancing: set[DispatchKey] = set()

    # Admission -----------------------------------------------------------

    async def receive(self, event: ValidationEvent) -> AdmissionResult:
        """Admit ``event`` and schedule work for a newly admitted key.

        A duplicate of a finished key re-publishes its stored outcome, which
        leaves the pull request untouched when nothing changed.
        """
        admission = await self._deduplicator.admit(event)
        key = admission.record.key
        match admission.decision:
            case AdmissionDecision.ADMITTED:
                self._events.log_admitted(
                    key, event_id=event.event_id, superseded=admission.superseded
                )
                self.scheduler.schedule(key)
            case AdmissionDecision.DUPLICATE:
                self._events.log_duplicate(
                    key, event_id=event.event_id, state=admission.record.state
                )
                if admission.record.dispatch_state.is_terminal:
                    await self._retry_publication(key)
            case AdmissionDecision.SUPERSEDED:
                newer = admission.superseded_by
                reason = (
                    f"older than head {newer.head_sha}"
                    if newer is not None
                    else "head commit already superseded"
                )
                self._events.log_discarded(key, reason=reason)
        return admission

    # Advancement ---------------------------------------------------------

    async def advance(self, key: DispatchKey) -> DispatchState | None:
        """Move a pending record towards ``RUNNING``.

        Returns the record's state afterwards, or ``None`` when this process
        is already advancing ``key``.

        Raises
        ------
        DispatchNotFoundError
            If ``key`` has no record.

        """
        if key in self._advancing:
            return None
        self._advancing.add(key)
        try:
            return await self._advance(key)
        finally:
            self._advancing.discard(key)

    async def _advance(self, key: DispatchKey) -> DispatchState:
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await self._require(session, key)
            if not self._needs_dispatch(record):
                return record.dispatch_state

            contracts = self._deps.registry.resolve(key.repo)
            now = self._clock()
            if not contracts:
                await self._complete_unmapped(session, record, now)
                return record.dispatch_state

            if record.dispatch_state is DispatchState.PENDING:
                record.transition_to(DispatchState.DISPATCHING, now)
            record.updated_at = now
            record.dispatched_at = record.dispatched_at or now
            record.deadline_at = record.deadline_at or now + self._config.run_timeout
            deadline_at = record.deadline_at
            branch_ref = record.branch_ref
            await session.commit()
        self._events.log_dispatching(
            key, contract_ids=[contract.id for contract in contracts]
        )

        try:
            credentials = await self._acquire_credentials(key)
        except CredentialError as exc:
            return await self._fail(key, f"credentials unavailable: {exc}", error=exc)

        if not await self._still_dispatching(key):
            return DispatchState.SUPERSEDED

        request = self._build_request(key, branch_ref, contracts, deadline_at)
        attempts = 0

        async def invoke() -> str:
            nonlocal attempts
            attempts += 1
            return await self._deps.invoker.invoke(request, credentials=credentials)

        def on_retry(attempt: int, exc: Exception) -> None:
            log_warning(logger, "Invoking validator for %s failed (attempt %d): %s", key, attempt, exc)

        try:
            invocation_id = await retry_async(
                invoke,
                policy=self._config.retry,
                retry_on=(InvocationError,),
                sleep=self._sleep,
                on_retry=on_retry,
            )
        except RetryExhaustedError as exc:
            await self._record_attempts(key, attempts)
            reason = f"validator unavailable after {exc.attempts} attempt(s): {exc.last_error}"
            return await self._fail(key, reason, error=exc.last_error)

        return await self._mark_running(key, invocation_id, attempts)

    @staticmethod
    def _needs_dispatch(record: DispatchRecord) -> bool:
        state = record.dispatch_state
        if state is DispatchState.PENDING:
            return True
        # A dispatching record without an invocation id was interrupted.
        return state is DispatchState.DISPATCHING and record.invocation_id is None

    async def _complete_unmapped(
        self, session: AsyncSession, record: DispatchRecord, now: dt.datetime
    ) -> None:
        result = ValidationResult.no_applicable_contracts()
        record.transition_to(DispatchState.COMPLETED, now)
        record.result_summary = result.encode().decode("utf-8")
        record.completed_at = now
        record.publishable = False
        session.add(ValidationResultRecord.from_result(record.key, result, recorded_at=now))
        await session.commit()
        self._events.log_completed(record.key, severity=result.severity, finding_count=0)

    async def _acquire_credentials(self, key: DispatchKey) -> DispatchCredentials:
        contracts_token = await self._deps.broker.token_for(
            self._config.contracts_repo, CONTRACTS_REPO_PERMISSIONS
        )
        producer_token = await self._deps.broker.token_for(
            key.repo, PRODUCER_READ_PERMISSIONS
        )
        return DispatchCredentials(
            contracts_token=contracts_token, producer_token=producer_token
        )

    def _build_request(
        self,
        key: DispatchKey,
        branch_ref: str,
        contracts: tuple[ContractDocument, ...],
        deadline_at: dt.datetime | None,
    ) -> ValidationRequest:
        return ValidationRequest(
            repository=key.repo,
            pull_request=key.pr_number,
            head_sha=key.head_sha,
            branch_ref=branch_ref,
            contracts=tuple(
                ContractReference(id=contract.id, version=contract.version)
                for contract in contracts
            ),
            callback_url=self._config.callback_url,
            deadline_at=deadline_at,
        )

    async def _still_dispatching(self, key: DispatchKey) -> bool:
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await self._require(session, key)
            if record.dispatch_state is DispatchState.DISPATCHING:
                return True
        if record.dispatch_state is DispatchState.SUPERSEDED:
            self._events.log_discarded(key, reason="superseded during dispatch")
        return False

    async def _record_attempts(self, key: DispatchKey, attempts: int) -> None:
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await self._require(session, key)
            record.attempts += attempts
            record.updated_at = self._clock()
            await session.commit()

    async def _mark_running(
        self, key: DispatchKey, invocation_id: str, attempts: int
    ) -> DispatchState:
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await self._require(session, key)
            record.attempts += attempts
            state = record.dispatch_state
            if state is not DispatchState.DISPATCHING:
                # Superseded meanwhile, or the validator already called back.
                await session.commit()
                if state is DispatchState.SUPERSEDED:
                    self._events.log_discarded(key, reason="superseded during dispatch")
                return state
            record.transition_to(DispatchState.RUNNING, self._clock())
            record.invocation_id = invocation_id
            total_attempts = record.attempts
            await session.commit()
        self._events.log_running(key, invocation_id=invocation_id, attempts=total_attempts)
        return DispatchState.RUNNING

    # Callbacks -----------------------------------------------------------

    async def complete(self, key: DispatchKey, result: ValidationResult) -> CallbackStatus:
        """Attach ``result`` to a running record and publish it.

        Raises
        ------
        DispatchNotFoundError
            If ``key`` has no record.

        """
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await self._require(session, key)
            status = self._classify_callback(record)
            if status is not None:
                return status

            now = self._clock()
            if record.deadline_at is not None and now > record.deadline_at:
                error = DispatchTimeoutError.deadline_passed(key, record.deadline_at)
                await self._fail_locked(session, record, str(error), error=error)
                return CallbackStatus.FAILED

            record.transition_to(DispatchState.COMPLETED, now)
            record.result_summary = result.encode().decode("utf-8")
            record.completed_at = now
            session.add(ValidationResultRecord.from_result(key, result, recorded_at=now))
            await session.commit()
            self._events.log_completed(
                key, severity=result.severity, finding_count=len(result.findings)
            )
            await self._publish_locked(session, record)
        return CallbackStatus.COMPLETED

    async def fail(self, key: DispatchKey, reason: str) -> CallbackStatus:
        """Record that the validator gave up on ``key``.

        Raises
        ------
        DispatchNotFoundError
            If ``key`` has no record.

        """
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await self._require(session, key)
            status = self._classify_callback(record)
            if status is not None:
                return status
            await self._fail_locked(session, record, reason)
        return CallbackStatus.FAILED

    def _classify_callback(self, record: DispatchRecord) -> CallbackStatus | None:
        state = record.dispatch_state
        if state is DispatchState.SUPERSEDED:
            self._events.log_discarded(record.key, reason="result for superseded head")
            return CallbackStatus.DISCARDED
        if state.is_terminal:
            self._events.log_duplicate(record.key, event_id=record.event_id, state=state)
            return CallbackStatus.DUPLICATE
        if state is DispatchState.PENDING:
            self._events.log_discarded(record.key, reason="result before dispatch")
            return CallbackStatus.DISCARDED
        return None

    # Failure and publication ---------------------------------------------

    async def _fail(
        self, key: DispatchKey, reason: str, *, error: BaseException | None = None
    ) -> DispatchState:
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await self._require(session, key)
            if record.dispatch_state.is_terminal:
                return record.dispatch_state
            await self._fail_locked(session, record, reason, error=error)
            return record.dispatch_state

    async def _fail_locked(
        self,
        session: AsyncSession,
        record: DispatchRecord,
        reason: str,
        *,
        error: BaseException | None = None,
    ) -> None:
        now = self._clock()
        record.transition_to(DispatchState.FAILED, now)
        record.last_error = reason
        record.completed_at = now
        await session.commit()
        self._events.log_failed(record.key, reason=reason, error=error)
        await self._publish_locked(session, record)

    async def _publish_locked(
        self, session: AsyncSession, record: DispatchRecord
    ) -> PublishOutcome | None:
        """Publish the record's outcome; the caller holds the PR lock."""
        if not record.publishable:
            return None
        reconciler = self._deps.reconciler
        try:
            if record.dispatch_state is DispatchState.FAILED:
                outcome = await reconciler.publish_unavailable(
                    record.key, record.last_error or "validation failed"
                )
            else:
                result = record.result
                if result is None:
                    return None
                outcome = await reconciler.publish(record.key, result)
        except ReconciliationError as exc:
            record.publish_pending = True
            record.updated_at = self._clock()
            await session.commit()
            self._events.log_publish_deferred(record.key, error=exc)
            return None
        if record.publish_pending:
            record.publish_pending = False
            record.updated_at = self._clock()
            await session.commit()
        return outcome

    async def _retry_publication(self, key: DispatchKey) -> PublishOutcome | None:
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await load_record(session, key)
            if record is None or record.dispatch_state not in (
                DispatchState.COMPLETED,
                DispatchState.FAILED,
            ):
                return None
            return await self._publish_locked(session, record)

    async def _expire(self, key: DispatchKey, now: dt.datetime) -> bool:
        async with self._locks.hold(key.pull_request), self._deps.session_factory() as session:
            record = await load_record(session, key)
            if (
                record is None
                or not record.dispatch_state.is_in_flight
                or record.deadline_at is None
                or record.deadline_at >= now
            ):
                return False
            error = DispatchTimeoutError.deadline_passed(key, record.deadline_at)
            await self._fail_locked(session, record, str(error), error=error)
            return True

    # Maintenance ---------------------------------------------------------

    async def sweep(self, now: dt.datetime | None = None) -> SweepReport:
        """Expire overdue runs, retry deferred publications, resume idle work."""
        now = now or self._clock()
        async with self._deps.session_factory() as session:
            stmt = select(DispatchRecord).where(
                or_(
                    DispatchRecord.state.in_(
                        [
                            DispatchState.PENDING.value,
                            DispatchState.DISPATCHING.value,
                            DispatchState.RUNNING.value,
                        ]
                    ),
                    DispatchRecord.publish_pending.is_(True),
                )
            )
            candidates = list(await session.scalars(stmt))

        expired: list[DispatchKey] = []
        republished: list[DispatchKey] = []
        resumed: list[DispatchKey] = []
        idle_before = now - self._config.resume_after
        for record in candidates:
            key = record.key
            state = record.dispatch_state
            if state.is_in_flight and record.deadline_at is not None and record.deadline_at < now:
                if await self._expire(key, now):
                    expired.append(key)
            elif record.publish_pending and state.is_terminal:
                if await self._retry_publication(key) is not None:
                    republished.append(key)
            elif self._needs_dispatch(record) and record.updated_at <= idle_before:
                self.scheduler.schedule(key)
                resumed.append(key)

        return SweepReport(
            expired=tuple(expired),
            republished=tuple(republished),
            resumed=tuple(resumed),
        )

    async def get(self, key: DispatchKey) -> DispatchRecord:
        """Return the record for ``key``.

        Raises
        ------
        DispatchNotFoundError
            If ``key`` has no record.

        """
        async with self._deps.session_factory() as session:
            return await self._require(session, key)

    @staticmethod
    async def _require(session: AsyncSession, key: DispatchKey) -> DispatchRecord:
        record = await load_record(session, key)
        if record is None:
            raise DispatchNotFoundError(key)
        return record
