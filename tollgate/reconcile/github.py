"""GitHub REST implementation of :class:`PullRequestSurface`."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from tollgate.common.slug import parse_repo_slug
from tollgate.credentials.models import PRODUCER_PUBLISH_PERMISSIONS

from .errors import CommentNotFoundError, SurfaceError

if typ.TYPE_CHECKING:
    from tollgate.credentials.broker import TokenBroker

    from .config import GitHubSurfaceConfig
    from .surface import CommitStatus

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
_COMMENTS_PAGE_SIZE = 100


class _Comment(msgspec.Struct, kw_only=True):
    id: int
    body: str | None = None


class GitHubPullRequestSurface:
    """Publish comments and commit statuses with producer-scoped tokens.

    Tokens come from the broker, so they are cached and refreshed alongside
    the tokens used for dispatch.
    """

    def __init__(
        self,
        config: GitHubSurfaceConfig,
        broker: TokenBroker,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Store collaborators and prepare the HTTP client."""
        self._config = config
        self._broker = broker
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Accept": "application/vnd.github+json",
                "User-Agent": config.user_agent,
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def find_comment(self, repo: str, pr_number: int, marker: str) -> int | None:
        """Scan the PR's issue comments for one containing ``marker``."""
        owner, name = parse_repo_slug(repo)
        page = 1
        while True:
            response = await self._send(
                "GET",
                repo,
                f"/repos/{owner}/{name}/issues/{pr_number}/comments",
                operation="list comments",
                params={"per_page": _COMMENTS_PAGE_SIZE, "page": page},
            )
            try:
                comments = msgspec.json.decode(response.content, type=list[_Comment])
            except msgspec.DecodeError as exc:
                msg = f"list comments returned an unexpected body: {exc}"
                raise SurfaceError(msg) from exc
            for comment in comments:
                if comment.body and marker in comment.body:
                    return comment.id
            if len(comments) < _COMMENTS_PAGE_SIZE:
                return None
            page += 1

    async def create_comment(self, repo: str, pr_number: int, body: str) -> int:
        """Create an issue comment on the PR and return its id."""
        owner, name = parse_repo_slug(repo)
        response = await self._send(
            "POST",
            repo,
            f"/repos/{owner}/{name}/issues/{pr_number}/comments",
            operation="create comment",
            json={"body": body},
        )
        try:
            return msgspec.json.decode(response.content, type=_Comment).id
        except msgspec.DecodeError as exc:
            msg = f"create comment returned an unexpected body: {exc}"
            raise SurfaceError(msg) from exc

    async def update_comment(self, repo: str, comment_id: int, body: str) -> None:
        """Edit an existing comment in place."""
        owner, name = parse_repo_slug(repo)
        try:
            await self._send(
                "PATCH",
                repo,
                f"/repos/{owner}/{name}/issues/comments/{comment_id}",
                operation="update comment",
                json={"body": body},
            )
        except SurfaceError as exc:
            if exc.status_code == _HTTP_NOT_FOUND:
                raise CommentNotFoundError.for_comment(comment_id) from exc
            raise

    async def set_commit_status(self, repo: str, head_sha: str, status: CommitStatus) -> None:
        """Create a commit status on ``head_sha``."""
        owner, name = parse_repo_slug(repo)
        payload: dict[str, str] = {
            "state": status.state.value,
            "description": status.description,
            "context": status.context,
        }
        if status.target_url:
            payload["target_url"] = status.target_url
        await self._send(
            "POST",
            repo,
            f"/repos/{owner}/{name}/statuses/{head_sha}",
            operation="set commit status",
            json=payload,
        )

    async def _send(  # noqa: PLR0913
        self,
        method: str,
        repo: str,
        path: str,
        *,
        operation: str,
        json: dict[str, typ.Any] | None = None,
        params: dict[str, typ.Any] | None = None,
    ) -> httpx.Response:
        token = await self._broker.token_for(repo, PRODUCER_PUBLISH_PERMISSIONS)
        try:
            response = await self._client.request(
                method,
                f"{self._config.api_url}{path}",
                headers={"Authorization": token.authorization},
                json=json,
                params=params,
            )
        except httpx.HTTPError as exc:
            raise SurfaceError.transport(operation, exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise SurfaceError.http_error(operation, response.status_code)
        return response
