"""Shared fixtures for BDD feature tests.

Step functions are synchronous, so every coroutine a scenario needs runs on
one :class:`asyncio.Runner`. The database engine is created on that runner's
loop and disposed there when the scenario ends.
"""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.helpers.storage import setup_sqlite

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def runner() -> typ.Iterator[asyncio.Runner]:
    """Provide one event loop for the whole scenario."""
    with asyncio.Runner() as scenario_runner:
        yield scenario_runner


@pytest.fixture
def bdd_session_factory(
    runner: asyncio.Runner, tmp_path: Path
) -> typ.Iterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory whose engine lives on the scenario loop."""
    engine = runner.run(setup_sqlite(tmp_path))
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        runner.run(engine.dispose())
