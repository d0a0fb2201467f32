"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.helpers.contracts import write_contract_source
from tests.helpers.storage import setup_sqlite

if typ.TYPE_CHECKING:
    from pathlib import Path

    from tollgate.contracts.loader import ContractSource


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def contract_source(tmp_path: Path) -> ContractSource:
    """Return a valid source mapping checkout-service to the orders contract."""
    return write_contract_source(tmp_path / "contracts-repo")
