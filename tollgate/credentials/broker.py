"""Cache scoped tokens and coordinate refreshes.

Each cache entry is keyed by repository and a digest of the permission set,
and carries the token's own expiry. A token is reused until it is within the
refresh margin of expiring. When several callers need the same missing or
stale entry at once, one exchange runs and the others await its outcome.

Usage
-----
>>> broker = TokenBroker(GitHubAppCredentialExchange(GitHubAppConfig.from_env()))
>>> token = await broker.token_for("acme/contracts", CONTRACTS_REPO_PERMISSIONS)

"""

from __future__ import annotations

import asyncio
import typing as typ

from tollgate.common.retry import RetryExhaustedError, retry_async
from tollgate.common.slug import normalize_repo_slug
from tollgate.common.time import utcnow
from tollgate.logging import get_logger, log_info, log_warning

from .config import BrokerConfig
from .errors import CredentialError, CredentialExchangeError
from .models import permissions_digest

if typ.TYPE_CHECKING:
    from tollgate.common.retry import Sleep
    from tollgate.common.time import Clock

    from .exchange import CredentialExchange
    from .models import Permissions, ScopedToken

logger = get_logger(__name__)

type CacheKey = tuple[str, str]


class TokenBroker:
    """Hand out scoped tokens, minting them only when needed.

    Parameters
    ----------
    exchange
        Collaborator that mints one token per call.
    config
        Refresh margin and retry policy.
    clock
        Time source for freshness checks.
    sleep
        Awaitable used between retries; injectable for tests.

    """

    def __init__(
        self,
        exchange: CredentialExchange,
        *,
        config: BrokerConfig | None = None,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Create an empty cache around ``exchange``."""
        self._exchange = exchange
        self._config = config or BrokerConfig()
        self._clock = clock
        self._sleep = sleep
        self._cache: dict[CacheKey, ScopedToken] = {}
        self._inflight: dict[CacheKey, asyncio.Future[ScopedToken]] = {}

    @staticmethod
    def cache_key(repository: str, permissions: Permissions) -> CacheKey:
        """Return the cache key for a repository and permission set."""
        return (normalize_repo_slug(repository), permissions_digest(permissions))

    async def token_for(self, repository: str, permissions: Permissions) -> ScopedToken:
        """Return a token for ``repository`` valid beyond the refresh margin.

        Raises
        ------
        CredentialError
            If every exchange attempt allowed by the retry policy failed.

        """
        key = self.cache_key(repository, permissions)
        cached = self._cache.get(key)
        if cached is not None and cached.is_fresh(
            self._clock(), self._config.refresh_margin
        ):
            return cached

        refresh = self._inflight.get(key)
        if refresh is None:
            refresh = asyncio.ensure_future(self._refresh(key, permissions))
            self._inflight[key] = refresh
            refresh.add_done_callback(lambda done: self._forget(key, done))
        # Shield so one cancelled waiter does not cancel the shared refresh.
        return await asyncio.shield(refresh)

    def invalidate(self, repository: str, permissions: Permissions) -> None:
        """Drop the cached token for ``repository`` and ``permissions``."""
        self._cache.pop(self.cache_key(repository, permissions), None)

    def _forget(self, key: CacheKey, done: asyncio.Future[ScopedToken]) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        if not done.cancelled():
            # Mark the outcome retrieved; waiters receive it through shield.
            done.exception()

    async def _refresh(self, key: CacheKey, permissions: Permissions) -> ScopedToken:
        repository = key[0]

        def on_retry(attempt: int, exc: Exception) -> None:
            log_warning(
                logger,
                "Token exchange for %s failed (attempt %d): %s",
                repository,
                attempt,
                exc,
            )

        try:
            token = await retry_async(
                lambda: self._exchange.exchange(repository, permissions),
                policy=self._config.retry,
                retry_on=(CredentialExchangeError,),
                sleep=self._sleep,
                on_retry=on_retry,
            )
        except RetryExhaustedError as exc:
            raise CredentialError.exhausted(
                repository, exc.attempts, exc.last_error
            ) from exc

        self._cache[key] = token
        log_info(
            logger,
            "Cached token for %s expiring %s",
            repository,
            token.expires_at.isoformat(),
        )
        return token
