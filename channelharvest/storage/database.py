"""
SQLAlchemy persistence sink.

Upserts harvested records into the ``harvested_channels`` table through
an async engine. Each ``upsert_many`` call is one transaction; a failing
batch is rolled back and the error propagates so the caller can fall
back to per-record writes.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from channelharvest.models import ChannelRecord
from channelharvest.storage.models import Base, ChannelRow
from channelharvest.storage.sink import UpsertResult

logger = logging.getLogger(__name__)


def _get_async_url(url: str) -> str:
    """Convert a sync database URL to its async driver form."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class DatabaseSink:
    """Upsert sink keyed by canonical stream URL."""

    def __init__(self, url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self.url = _get_async_url(url)
        if engine is None:
            kwargs = {}
            if self.url.startswith("sqlite+aiosqlite") and ":memory:" in self.url:
                kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
            engine = create_async_engine(self.url, echo=echo, future=True, **kwargs)
        self._engine = engine
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._initialized = False

    async def initialize(self) -> None:
        """Create the table if it does not exist."""
        if self._initialized:
            return
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._initialized = True
        logger.info(f"Database sink ready: {self._engine.url.render_as_string(hide_password=True)}")

    async def upsert_many(self, records: list[ChannelRecord]) -> UpsertResult:
        await self.initialize()
        by_key = {record.stream_key: record for record in records if record.stream_key}
        if not by_key:
            return UpsertResult()

        result = UpsertResult()
        async with self._session_factory() as session:
            try:
                existing = await session.execute(
                    select(ChannelRow).where(ChannelRow.stream_key.in_(list(by_key)))
                )
                rows = {row.stream_key: row for row in existing.scalars()}

                for key, record in by_key.items():
                    row = rows.get(key)
                    if row is None:
                        row = ChannelRow()
                        session.add(row)
                        result.created += 1
                    else:
                        result.updated += 1
                    row.apply(record)

                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return result

    async def count(self) -> int:
        await self.initialize()
        async with self._session_factory() as session:
            return (await session.execute(select(func.count(ChannelRow.id)))).scalar_one()

    async def fetch_all(self) -> list[ChannelRow]:
        await self.initialize()
        async with self._session_factory() as session:
            return list((await session.execute(select(ChannelRow).order_by(ChannelRow.id))).scalars())

    async def close(self) -> None:
        await self._engine.dispose()
