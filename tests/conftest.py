"""Shared fixtures: a throwaway SQLite database and a local blob store per test."""

from __future__ import annotations

import io
from collections.abc import AsyncIterator, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from filevault.core.database import Base, create_engine, create_session_factory
from filevault.services.blob_store import LocalBlobStore

import filevault.models  # noqa: F401  registers every mapper on Base.metadata


@pytest_asyncio.fixture()
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'filevault.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine):
    return create_session_factory(engine)


@pytest_asyncio.fixture()
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture()
def put_blob(blob_store: LocalBlobStore) -> Callable[[bytes, str], str]:
    """Store ``data`` and return its storage key, as the upload endpoint does."""

    def _put(data: bytes, filename: str = "report.pdf") -> str:
        return blob_store.store(io.BytesIO(data), filename)

    return _put
