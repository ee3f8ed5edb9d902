"""
Key/value stores backing the cache-aside fetcher.

Both stores share one contract:

- ``get(key)`` returns the JSON-decoded value, or ``MISSING`` when nothing
  (or only an expired entry) is stored. An empty list is a stored value.
- ``put(key, value, ttl=None)`` stores the JSON-encoded value, expiring it
  after ``ttl`` seconds when given.
"""

import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import or_, select, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from github_metrics.domain.exceptions import CacheError
from github_metrics.infrastructure.database import cache_table


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


class CacheKeys:
    """
    Centralized cache key definitions.

    Every parameter that changes the upstream result is part of the key.
    """

    @staticmethod
    def user_repos(username: str) -> str:
        return f"repos:{username}"

    @staticmethod
    def user_repos_page(username: str, page: int, per_page: int) -> str:
        return f"repos:{username}:page:{page}:per_page:{per_page}"

    @staticmethod
    def user_badge(username: str) -> str:
        return f"badge:{username}"


class InMemoryCacheStore:
    """Dict backed store with monotonic-clock expiry. Used for local runs and tests."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        serialized, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return MISSING
        return json.loads(serialized)

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = (json.dumps(value), expires_at)


class PostgresCacheStore:
    """Cache entries kept in the response_cache table of the service database."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def get(self, key: str) -> Any:
        query = select(cache_table.c.payload).where(
            cache_table.c.cache_key == key,
            or_(cache_table.c.expires_at.is_(None), cache_table.c.expires_at > func.now()),
        )
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(query)
                serialized = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise CacheError(f"Cache read for '{key}' failed: {e}") from e

        if serialized is None:
            return MISSING
        return json.loads(serialized)

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl) if ttl else None
        stmt = insert(cache_table).values(cache_key=key, payload=json.dumps(value), expires_at=expires_at)
        upsert_stmt = stmt.on_conflict_do_update(
            index_elements=['cache_key'],
            set_={
                'payload': stmt.excluded.payload,
                'expires_at': stmt.excluded.expires_at,
                'created_at': func.now(),
            },
        )
        try:
            async with self.engine.begin() as conn:
                await conn.execute(upsert_stmt)
        except SQLAlchemyError as e:
            raise CacheError(f"Cache write for '{key}' failed: {e}") from e
