"""Async record store with SQLModel and SQLAlchemy 2.0."""

from typing import Iterable, List, Optional
from sqlmodel import SQLModel, select
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager

from core.config import Settings
from core.errors import StoreUnavailableError
from core.logging import get_logger
from models.record import Record

logger = get_logger(__name__)


class Database:
    """Async record store adapter.

    Exposes the four operations the regeneration pipeline consumes
    (count, paged fetch, fetch by id, caption update) plus a full fetch for
    the snapshot. Not-found is reported as ``None``; driver and connection
    failures are raised as :class:`StoreUnavailableError` so that the caller
    decides whether they are fatal.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Open the engine, create tables and verify connectivity."""
        engine_kwargs = {"echo": self.settings.database_echo, "future": True}
        if not self.settings.database_url.startswith("sqlite"):
            engine_kwargs["pool_size"] = self.settings.database_pool_size
            engine_kwargs["max_overflow"] = self.settings.database_max_overflow
            engine_kwargs["pool_pre_ping"] = True

        try:
            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
                await conn.execute(text("SELECT 1"))

            logger.info("Database initialized successfully")

        except (SQLAlchemyError, OSError) as e:
            logger.error("Database startup failed", error=str(e))
            raise StoreUnavailableError("startup", str(e)) from e

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            logger.info("Database connections closed")

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    @asynccontextmanager
    async def get_session(self):
        """Get async database session, translating driver errors."""
        if not self.async_session:
            raise StoreUnavailableError("session", "Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreUnavailableError("session", str(e)) from e
            except Exception:
                await session.rollback()
                raise

    # ============================================================================
    # Records
    # ============================================================================

    async def count(self) -> int:
        """Number of records in the store."""
        async with self.get_session() as session:
            result = await session.execute(select(func.count()).select_from(Record))
            return int(result.scalar_one())

    async def fetch_page(self, offset: int, limit: int) -> List[Record]:
        """Fetch one page of records in insertion order."""
        if offset < 0 or limit <= 0:
            raise ValueError(f"Invalid page: offset={offset}, limit={limit}")

        async with self.get_session() as session:
            stmt = (
                select(Record)
                .order_by(Record.created_at, Record.id)
                .offset(offset)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def fetch_all(self) -> List[Record]:
        """Fetch every record in insertion order."""
        async with self.get_session() as session:
            stmt = select(Record).order_by(Record.created_at, Record.id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def fetch_by_id(self, record_id: str) -> Optional[Record]:
        """Get record by ID."""
        async with self.get_session() as session:
            return await session.get(Record, record_id)

    async def update_caption(self, record_id: str, caption: str) -> Optional[Record]:
        """Replace a record's caption in a single transaction.

        Returns the updated record, or ``None`` if the id is unknown.
        Writing the same caption twice leaves the same stored state.
        """
        async with self.get_session() as session:
            record = await session.get(Record, record_id, with_for_update=True)
            if record is None:
                return None

            record.caption = caption
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record

    async def add_records(self, records: Iterable[Record]) -> int:
        """Insert records in one transaction."""
        records = list(records)
        async with self.get_session() as session:
            session.add_all(records)
            await session.commit()
        logger.debug("Records inserted", count=len(records))
        return len(records)

