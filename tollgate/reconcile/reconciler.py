"""Publish validation outcomes onto pull requests.

Every pull request carries at most one Tollgate comment, edited in place,
plus a commit status on the head commit. The reconciler remembers what it
last made visible per pull request; publishing the same content for the
same head again is a no-op, which is what makes re-publication after
redelivery or restart safe.

Usage
-----
>>> reconciler = ResultReconciler(session_factory, surface)
>>> await reconciler.publish(key, result)
<PublishOutcome.CREATED: 'created'>

"""

from __future__ import annotations

import asyncio
import enum
import typing as typ

from sqlalchemy import select

from tollgate.common.retry import RetryExhaustedError, retry_async
from tollgate.common.time import utcnow
from tollgate.credentials.errors import CredentialError
from tollgate.logging import get_logger, log_info, log_warning

from .config import ReconcilerConfig
from .errors import CommentNotFoundError, ReconciliationError, SurfaceError
from .markdown import COMMENT_MARKER, render_result, render_unavailable
from .storage import PullRequestStatus

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tollgate.common.keys import DispatchKey
    from tollgate.common.retry import Sleep
    from tollgate.common.time import Clock
    from tollgate.validation.models import ValidationResult

    from .markdown import RenderedOutcome
    from .surface import PullRequestSurface

logger = get_logger(__name__)


class PublishOutcome(enum.StrEnum):
    """What a publication changed on the pull request."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class ResultReconciler:
    """Make the latest outcome for a pull request visible exactly once.

    Parameters
    ----------
    session_factory
        Session factory for the ``pull_request_statuses`` table.
    surface
        Where comments and statuses are written.
    config
        Retry policy and status presentation.
    clock
        Time source for ``published_at``.
    sleep
        Awaitable used between retries.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        surface: PullRequestSurface,
        *,
        config: ReconcilerConfig | None = None,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Store collaborators."""
        self._session_factory = session_factory
        self._surface = surface
        self._config = config or ReconcilerConfig()
        self._clock = clock
        self._sleep = sleep

    async def publish(self, key: DispatchKey, result: ValidationResult) -> PublishOutcome:
        """Publish a validated result for ``key``.

        Raises
        ------
        ReconciliationError
            If the surface kept failing after all retries.

        """
        rendered = render_result(
            key,
            result,
            context=self._config.status_context,
            target_url=self._config.details_url,
        )
        return await self._publish(key, rendered)

    async def publish_unavailable(self, key: DispatchKey, reason: str) -> PublishOutcome:
        """Publish the non-blocking "validation unavailable" notice for ``key``."""
        rendered = render_unavailable(
            key,
            reason,
            context=self._config.status_context,
            target_url=self._config.details_url,
        )
        return await self._publish(key, rendered)

    async def current(self, repo: str, pr_number: int) -> PullRequestStatus | None:
        """Return what is currently published on a pull request."""
        async with self._session_factory() as session:
            return await self._load(session, repo, pr_number)

    async def _publish(self, key: DispatchKey, rendered: RenderedOutcome) -> PublishOutcome:
        content_hash = rendered.content_hash(key.head_sha)
        existing = await self.current(key.repo, key.pr_number)
        if (
            existing is not None
            and existing.head_sha == key.head_sha
            and existing.content_hash == content_hash
        ):
            return PublishOutcome.UNCHANGED

        known_comment = existing.comment_id if existing is not None else None

        def on_retry(attempt: int, exc: Exception) -> None:
            log_warning(
                logger,
                "Publishing %s failed (attempt %d): %s",
                key,
                attempt,
                exc,
            )

        try:
            comment_id, created = await retry_async(
                lambda: self._apply(key, rendered, known_comment),
                policy=self._config.retry,
                retry_on=(SurfaceError,),
                sleep=self._sleep,
                on_retry=on_retry,
            )
        except RetryExhaustedError as exc:
            raise ReconciliationError.exhausted(
                f"{key.repo}#{key.pr_number}", exc.attempts, exc.last_error
            ) from exc
        except CredentialError as exc:
            msg = f"no credentials to publish on {key.repo}#{key.pr_number}: {exc}"
            raise ReconciliationError(msg) from exc

        await self._remember(key, rendered, content_hash, comment_id)
        outcome = PublishOutcome.CREATED if created else PublishOutcome.UPDATED
        log_info(
            logger,
            "Published %s on %s: %s (%s)",
            rendered.status.state,
            key,
            outcome,
            rendered.status.description,
        )
        return outcome

    async def _apply(
        self,
        key: DispatchKey,
        rendered: RenderedOutcome,
        known_comment: int | None,
    ) -> tuple[int, bool]:
        await self._surface.set_commit_status(key.repo, key.head_sha, rendered.status)

        comment_id = known_comment
        if comment_id is None:
            # Recover a comment left by an earlier attempt or a lost status row.
            comment_id = await self._surface.find_comment(
                key.repo, key.pr_number, COMMENT_MARKER
            )
        if comment_id is not None:
            try:
                await self._surface.update_comment(key.repo, comment_id, rendered.body)
            except CommentNotFoundError:
                comment_id = None
            else:
                return comment_id, False

        comment_id = await self._surface.create_comment(
            key.repo, key.pr_number, rendered.body
        )
        return comment_id, True

    async def _remember(
        self,
        key: DispatchKey,
        rendered: RenderedOutcome,
        content_hash: str,
        comment_id: int,
    ) -> None:
        async with self._session_factory() as session:
            row = await self._load(session, key.repo, key.pr_number)
            if row is None:
                row = PullRequestStatus(repo=key.repo, pr_number=key.pr_number)
                session.add(row)
            row.comment_id = comment_id
            row.head_sha = key.head_sha
            row.content_hash = content_hash
            row.status_state = rendered.status.state.value
            row.published_at = self._clock()
            await session.commit()

    @staticmethod
    async def _load(
        session: AsyncSession, repo: str, pr_number: int
    ) -> PullRequestStatus | None:
        stmt = select(PullRequestStatus).where(
            PullRequestStatus.repo == repo,
            PullRequestStatus.pr_number == pr_number,
        )
        return await session.scalar(stmt)
