"""Unit tests for the resources Dramatiq actors share across calls."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy import func, select
from sqlalchemy.pool import NullPool

from tests.helpers.storage import setup_sqlite
from tollgate.dispatch import DispatchRecord
from tollgate.dispatch import actor as dispatch_actor

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def empty_caches(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give each test its own engine and session factory caches."""
    monkeypatch.setattr(dispatch_actor, "_ENGINE_CACHE", {})
    monkeypatch.setattr(dispatch_actor, "_SESSION_FACTORY_CACHE", {})


@pytest.mark.usefixtures("empty_caches")
def test_cached_engine_keeps_no_connection_pool(tmp_path: Path) -> None:
    """Connections never outlive the event loop of the call that opened them."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'actor.db'}"

    with dispatch_actor._CACHE_LOCK:
        engine = dispatch_actor._ensure_engine(url)
        again = dispatch_actor._ensure_engine(url)

    assert again is engine
    assert isinstance(engine.pool, NullPool)


@pytest.mark.usefixtures("empty_caches")
def test_session_factory_survives_successive_event_loops(tmp_path: Path) -> None:
    """Each actor call gets a working session from a fresh loop."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'tollgate_test.db'}"

    async def create_tables() -> None:
        engine = await setup_sqlite(tmp_path)
        await engine.dispose()

    async def count_records() -> int:
        factory = dispatch_actor._get_or_create_session_factory(url)
        async with factory() as session:
            return await session.scalar(select(func.count()).select_from(DispatchRecord))

    asyncio.run(create_tables())

    assert asyncio.run(count_records()) == 0
    assert asyncio.run(count_records()) == 0, "second loop reuses the cached factory"
