"""Per-key asyncio locks that disappear when idle."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc


@dc.dataclass(slots=True)
class _Slot:
    lock: asyncio.Lock = dc.field(default_factory=asyncio.Lock)
    holders: int = 0


class KeyedLocks[K]:
    """Registry of :class:`asyncio.Lock` objects, one per key.

    Entries are created on first use and removed once nobody holds or waits
    for them, so the registry does not grow with the number of keys ever
    seen.

    Examples
    --------
    >>> locks: KeyedLocks[tuple[str, int]] = KeyedLocks()
    >>> async with locks.hold(("acme/checkout-service", 42)):
    ...     ...

    """

    def __init__(self) -> None:
        """Start with no locks."""
        self._slots: dict[K, _Slot] = {}

    def __len__(self) -> int:
        """Return the number of keys currently held or awaited."""
        return len(self._slots)

    def locked(self, key: K) -> bool:
        """Return whether ``key`` is currently held."""
        slot = self._slots.get(key)
        return slot is not None and slot.lock.locked()

    @contextlib.asynccontextmanager
    async def hold(self, key: K) -> cabc.AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.holders += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.holders -= 1
            if slot.holders == 0 and self._slots.get(key) is slot:
                del self._slots[key]
