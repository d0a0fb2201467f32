"""Persistence models for dispatch records and stored validation results."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from tollgate.common.keys import DispatchKey
from tollgate.common.time import utcnow
from tollgate.validation.models import ValidationResult

from .errors import InvalidTransitionError, TimezoneAwareRequiredError
from .states import DispatchState, can_transition

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class Base(DeclarativeBase):
    """Base declarative class for Tollgate models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError("dispatch timestamps")
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class DispatchRecord(Base):
    """Current state of the validation run for one dispatch key.

    Exactly one row exists per ``(repo, pr_number, head_sha)``; the unique
    constraint is what makes concurrent admissions from separate processes
    collapse into a single record.
    """

    __tablename__ = "dispatch_records"
    __table_args__ = (
        UniqueConstraint("repo", "pr_number", "head_sha", name="uq_dispatch_key"),
        Index("ix_dispatch_records_pull_request", "repo", "pr_number"),
        Index("ix_dispatch_records_state", "state"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    repo: Mapped[str] = mapped_column(String(255))
    pr_number: Mapped[int] = mapped_column(Integer)
    head_sha: Mapped[str] = mapped_column(String(64))
    event_id: Mapped[str] = mapped_column(String(255))
    branch_ref: Mapped[str] = mapped_column(String(255))
    previous_head_sha: Mapped[str | None] = mapped_column(String(64), default=None)
    head_updated_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    state: Mapped[str] = mapped_column(String(16), default=DispatchState.PENDING.value)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text(), default=None)
    invocation_id: Mapped[str | None] = mapped_column(String(255), default=None)
    result_summary: Mapped[str | None] = mapped_column(Text(), default=None)
    publishable: Mapped[bool] = mapped_column(Boolean, default=True)
    publish_pending: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    dispatched_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    deadline_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    completed_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)

    @property
    def key(self) -> DispatchKey:
        """Return the dispatch key this record tracks."""
        return DispatchKey(repo=self.repo, pr_number=self.pr_number, head_sha=self.head_sha)

    @property
    def dispatch_state(self) -> DispatchState:
        """Return :attr:`state` as a :class:`DispatchState`."""
        return DispatchState(self.state)

    def transition_to(self, target: DispatchState, now: dt.datetime) -> None:
        """Move to ``target`` if the lifecycle allows it.

        Raises
        ------
        InvalidTransitionError
            If ``target`` is not reachable from the current state.

        """
        current = self.dispatch_state
        if not can_transition(current, target):
            raise InvalidTransitionError(self.key, current, target)
        self.state = target.value
        self.updated_at = now

    @property
    def result(self) -> ValidationResult | None:
        """Return the stored validation result, if any."""
        if self.result_summary is None:
            return None
        return ValidationResult.decode(self.result_summary)


class ValidationResultRecord(Base):
    """Immutable history of completed validation results."""

    __tablename__ = "validation_results"
    __table_args__ = (
        UniqueConstraint("repo", "pr_number", "head_sha", name="uq_validation_result_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    repo: Mapped[str] = mapped_column(String(255))
    pr_number: Mapped[int] = mapped_column(Integer)
    head_sha: Mapped[str] = mapped_column(String(64))
    severity: Mapped[str] = mapped_column(String(16))
    finding_count: Mapped[int] = mapped_column(Integer, default=0)
    content_hash: Mapped[str] = mapped_column(String(64))
    payload: Mapped[str] = mapped_column(Text())
    recorded_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    @classmethod
    def from_result(
        cls, key: DispatchKey, result: ValidationResult, *, recorded_at: dt.datetime
    ) -> ValidationResultRecord:
        """Build a history row for ``result``."""
        return cls(
            repo=key.repo,
            pr_number=key.pr_number,
            head_sha=key.head_sha,
            severity=result.severity.value,
            finding_count=len(result.findings),
            content_hash=result.content_hash(),
            payload=result.encode().decode("utf-8"),
            recorded_at=recorded_at,
        )


async def init_dispatch_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
