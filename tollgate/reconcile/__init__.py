"""Publishing validation outcomes back onto pull requests."""

from __future__ import annotations

from .config import GitHubSurfaceConfig, ReconcilerConfig
from .errors import CommentNotFoundError, ReconciliationError, SurfaceError
from .github import GitHubPullRequestSurface
from .markdown import (
    COMMENT_MARKER,
    UNAVAILABLE_HEADING,
    RenderedOutcome,
    render_result,
    render_unavailable,
)
from .memory import InMemoryPullRequestSurface, StoredComment
from .reconciler import PublishOutcome, ResultReconciler
from .storage import PullRequestStatus, init_reconcile_storage
from .surface import CommitState, CommitStatus, PullRequestSurface

__all__ = [
    "COMMENT_MARKER",
    "UNAVAILABLE_HEADING",
    "CommentNotFoundError",
    "CommitState",
    "CommitStatus",
    "GitHubPullRequestSurface",
    "GitHubSurfaceConfig",
    "InMemoryPullRequestSurface",
    "PublishOutcome",
    "PullRequestStatus",
    "PullRequestSurface",
    "ReconcilerConfig",
    "ReconciliationError",
    "RenderedOutcome",
    "ResultReconciler",
    "StoredComment",
    "SurfaceError",
    "init_reconcile_storage",
    "render_result",
    "render_unavailable",
]
