"""In-memory pull request surface for tests and local development."""

from __future__ import annotations

import dataclasses as dc
import itertools
import typing as typ

from .errors import CommentNotFoundError, SurfaceError

if typ.TYPE_CHECKING:
    from .surface import CommitStatus


@dc.dataclass(slots=True)
class StoredComment:
    """A comment held by :class:`InMemoryPullRequestSurface`."""

    comment_id: int
    repo: str
    pr_number: int
    body: str
    edits: int = 0


class InMemoryPullRequestSurface:
    """Keep comments and statuses in dictionaries.

    Parameters
    ----------
    failures
        Number of leading calls that raise :class:`SurfaceError`.

    Attributes
    ----------
    comments
        Comments by id.
    statuses
        Every commit status set, in order, as ``(repo, sha, status)``.
    writes
        Number of successful create/update/status calls.

    """

    def __init__(self, *, failures: int = 0) -> None:
        """Start empty."""
        self._ids = itertools.count(1)
        self._remaining_failures = failures
        self.comments: dict[int, StoredComment] = {}
        self.statuses: list[tuple[str, str, CommitStatus]] = []
        self.writes = 0

    def _maybe_fail(self, operation: str) -> None:
        if self._remaining_failures > 0:
            self._remaining_failures -= 1
            msg = f"{operation} failed (simulated)"
            raise SurfaceError(msg, status_code=502)

    def comments_for(self, repo: str, pr_number: int) -> list[StoredComment]:
        """Return the comments on one pull request."""
        return [
            comment
            for comment in self.comments.values()
            if comment.repo == repo and comment.pr_number == pr_number
        ]

    def statuses_for(self, repo: str, head_sha: str) -> list[CommitStatus]:
        """Return statuses set on one commit, oldest first."""
        return [
            status
            for status_repo, sha, status in self.statuses
            if status_repo == repo and sha == head_sha
        ]

    async def find_comment(self, repo: str, pr_number: int, marker: str) -> int | None:
        """Return the first comment on the PR containing ``marker``."""
        self._maybe_fail("find comment")
        return next(
            (
                comment.comment_id
                for comment in self.comments_for(repo, pr_number)
                if marker in comment.body
            ),
            None,
        )

    async def create_comment(self, repo: str, pr_number: int, body: str) -> int:
        """Store a new comment."""
        self._maybe_fail("create comment")
        comment_id = next(self._ids)
        self.comments[comment_id] = StoredComment(
            comment_id=comment_id, repo=repo, pr_number=pr_number, body=body
        )
        self.writes += 1
        return comment_id

    async def update_comment(self, repo: str, comment_id: int, body: str) -> None:
        """Replace a stored comment's body."""
        self._maybe_fail("update comment")
        comment = self.comments.get(comment_id)
        if comment is None or comment.repo != repo:
            raise CommentNotFoundError.for_comment(comment_id)
        comment.body = body
        comment.edits += 1
        self.writes += 1

    async def set_commit_status(self, repo: str, head_sha: str, status: CommitStatus) -> None:
        """Record a commit status."""
        self._maybe_fail("set commit status")
        self.statuses.append((repo, head_sha, status))
        self.writes += 1
