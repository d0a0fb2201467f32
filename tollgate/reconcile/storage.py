"""Persistence of the visible state published on each pull request."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import BigInteger, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.common.time import utcnow
from tollgate.dispatch.storage import Base, UTCDateTime

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class PullRequestStatus(Base):
    """Last outcome published on a pull request.

    One row per pull request holds the comment id Tollgate edits and the hash
    of what is currently visible, so identical re-publications are skipped
    even across restarts.
    """

    __tablename__ = "pull_request_statuses"
    __table_args__ = (
        UniqueConstraint("repo", "pr_number", name="uq_pull_request_status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    repo: Mapped[str] = mapped_column(String(255))
    pr_number: Mapped[int] = mapped_column(Integer)
    comment_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    head_sha: Mapped[str] = mapped_column(String(64))
    content_hash: Mapped[str] = mapped_column(String(64))
    status_state: Mapped[str] = mapped_column(String(16))
    published_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


async def init_reconcile_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
