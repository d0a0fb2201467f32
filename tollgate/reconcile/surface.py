"""PullRequestSurface protocol: where outcomes become visible."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ


class CommitState(enum.StrEnum):
    """GitHub commit status states."""

    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"
    ERROR = "error"


@dc.dataclass(frozen=True, slots=True)
class CommitStatus:
    """A commit status to attach to a head commit."""

    state: CommitState
    description: str
    context: str
    target_url: str | None = None


@typ.runtime_checkable
class PullRequestSurface(typ.Protocol):
    """Comment and commit-status operations on a pull request.

    Implementations raise :class:`~tollgate.reconcile.errors.SurfaceError`
    for failures the reconciler may retry.
    """

    async def find_comment(self, repo: str, pr_number: int, marker: str) -> int | None:
        """Return the id of an existing comment containing ``marker``."""
        ...

    async def create_comment(self, repo: str, pr_number: int, body: str) -> int:
        """Create a comment and return its id."""
        ...

    async def update_comment(self, repo: str, comment_id: int, body: str) -> None:
        """Replace the body of comment ``comment_id``.

        Raises ``CommentNotFoundError`` if the comment was deleted.
        """
        ...

    async def set_commit_status(self, repo: str, head_sha: str, status: CommitStatus) -> None:
        """Attach ``status`` to ``head_sha``."""
        ...
