import logging
from typing import Callable, Dict, Optional
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import Table, Column, String, Integer, DateTime, MetaData, Text, select, text

from github_metrics.domain.exceptions import StorageError
from github_metrics.domain.models import MetricsSnapshot, PersistedMetricsRecord

logger = logging.getLogger(__name__)

# SQLAlchemy core Table definitions
metadata = MetaData()
metrics_table = Table(
    'github_metrics', metadata,
    Column('username', String, primary_key=True),
    Column('total_stars', Integer, nullable=False),
    Column('total_forks', Integer, nullable=False),
    Column('total_repos', Integer, nullable=False),
    Column('most_used_language', String, nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False, server_default=text('NOW()')),
)
cache_table = Table(
    'response_cache', metadata,
    Column('cache_key', String, primary_key=True),
    Column('payload', Text, nullable=False),
    Column('expires_at', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False, server_default=text('NOW()')),
)


def build_engine(db_url: str, timeout: Optional[float] = None) -> AsyncEngine:
    """Creates the async engine shared by the metrics repository and the cache store."""
    connect_args = {"command_timeout": timeout} if timeout else {}
    return create_async_engine(db_url, echo=False, pool_pre_ping=True, connect_args=connect_args)


async def ensure_schema(engine: AsyncEngine) -> None:
    """Creates missing tables. Meant for local runs; production schemas are managed outside the service."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


class PostgresMetricsRepository:
    """
    Repository class for the latest metrics of each user.
    One row per username, overwritten on every sync.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def upsert(self, username: str, snapshot: MetricsSnapshot) -> None:
        """
        Inserts or overwrites the metrics of a user and refreshes updated_at.

        Args:
            username (str): Normalised GitHub login used as the unique key.
            snapshot (MetricsSnapshot): Freshly computed metrics.

        Raises:
            StorageError: If the database rejects the statement or is unreachable.
        """
        stmt = insert(metrics_table).values(
            username=username,
            total_stars=snapshot.total_stars,
            total_forks=snapshot.total_forks,
            total_repos=snapshot.total_repos,
            most_used_language=snapshot.most_used_language,
        )
        upsert_stmt = stmt.on_conflict_do_update(
            index_elements=['username'],
            set_={
                'total_stars': stmt.excluded.total_stars,
                'total_forks': stmt.excluded.total_forks,
                'total_repos': stmt.excluded.total_repos,
                'most_used_language': stmt.excluded.most_used_language,
                'updated_at': text('NOW()'),
            },
        )

        try:
            async with self.engine.begin() as conn:
                await conn.execute(upsert_stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to store metrics for '{username}': {e}") from e
        logger.debug(f"Stored metrics for '{username}'.")

    async def get_latest(self, username: str) -> Optional[PersistedMetricsRecord]:
        query = (
            select(metrics_table)
            .where(metrics_table.c.username == username)
            .order_by(metrics_table.c.updated_at.desc())
            .limit(1)
        )
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(query)
                row = result.mappings().first()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load metrics for '{username}': {e}") from e

        if row is None:
            return None
        return PersistedMetricsRecord(**dict(row))


class InMemoryMetricsRepository:
    """Process-local stand-in for PostgresMetricsRepository with the same upsert semantics."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._clock = clock
        self.records: Dict[str, PersistedMetricsRecord] = {}

    async def upsert(self, username: str, snapshot: MetricsSnapshot) -> None:
        self.records[username] = PersistedMetricsRecord(
            username=username,
            total_stars=snapshot.total_stars,
            total_forks=snapshot.total_forks,
            total_repos=snapshot.total_repos,
            most_used_language=snapshot.most_used_language,
            updated_at=self._clock(),
        )

    async def get_latest(self, username: str) -> Optional[PersistedMetricsRecord]:
        return self.records.get(username)
