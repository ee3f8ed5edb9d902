import unittest

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from github_metrics.domain.exceptions import CacheError
from github_metrics.infrastructure.cache import MISSING, CacheKeys, InMemoryCacheStore, PostgresCacheStore


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class _DummyResult:
    def __init__(self, value) -> None:
        self._value = value

    def scalar_one_or_none(self):
        return self._value


class _DummyConn:
    def __init__(self, value=None, error=None) -> None:
        self.executed = None
        self.value = value
        self.error = error

    async def execute(self, stmt):
        if self.error is not None:
            raise self.error
        self.executed = stmt
        return _DummyResult(self.value)


class _DummyContext:
    def __init__(self, conn: _DummyConn) -> None:
        self._conn = conn

    async def __aenter__(self) -> _DummyConn:
        return self._conn

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class _DummyEngine:
    def __init__(self, conn: _DummyConn) -> None:
        self._conn = conn

    def begin(self) -> _DummyContext:
        return _DummyContext(self._conn)

    def connect(self) -> _DummyContext:
        return _DummyContext(self._conn)


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect())).lower()


class TestCacheKeys(unittest.TestCase):
    def test_keys_encode_every_parameter(self) -> None:
        self.assertEqual(CacheKeys.user_repos("octocat"), "repos:octocat")
        self.assertEqual(CacheKeys.user_repos_page("octocat", 2, 50), "repos:octocat:page:2:per_page:50")
        self.assertNotEqual(CacheKeys.user_repos_page("octocat", 2, 50), CacheKeys.user_repos_page("octocat", 2, 30))
        self.assertEqual(CacheKeys.user_badge("octocat"), "badge:octocat")


class TestInMemoryCacheStore(unittest.IsolatedAsyncioTestCase):
    async def test_absent_key_is_missing(self) -> None:
        cache = InMemoryCacheStore()

        self.assertIs(await cache.get("nope"), MISSING)

    async def test_entry_without_ttl_never_expires(self) -> None:
        clock = _FakeClock()
        cache = InMemoryCacheStore(clock=clock)
        await cache.put("k", [{"a": 1}])

        clock.now += 10 ** 9

        self.assertEqual(await cache.get("k"), [{"a": 1}])

    async def test_entry_expires_after_ttl(self) -> None:
        clock = _FakeClock()
        cache = InMemoryCacheStore(clock=clock)
        await cache.put("k", [], ttl=60)

        clock.now += 59
        self.assertEqual(await cache.get("k"), [])

        clock.now += 1
        self.assertIs(await cache.get("k"), MISSING)

    async def test_values_are_copies(self) -> None:
        cache = InMemoryCacheStore()
        value = [{"name": "a"}]
        await cache.put("k", value)

        value.append({"name": "b"})

        self.assertEqual(await cache.get("k"), [{"name": "a"}])


class TestPostgresCacheStore(unittest.IsolatedAsyncioTestCase):
    async def test_get_decodes_stored_json(self) -> None:
        conn = _DummyConn(value='[{"name": "a"}]')
        cache = PostgresCacheStore(_DummyEngine(conn))

        self.assertEqual(await cache.get("repos:octocat"), [{"name": "a"}])
        sql = _sql(conn.executed)
        self.assertIn("expires_at is null", sql)
        self.assertIn("now()", sql)

    async def test_get_without_row_is_missing(self) -> None:
        cache = PostgresCacheStore(_DummyEngine(_DummyConn(value=None)))

        self.assertIs(await cache.get("repos:octocat"), MISSING)

    async def test_put_upserts_on_key(self) -> None:
        conn = _DummyConn()
        cache = PostgresCacheStore(_DummyEngine(conn))

        await cache.put("badge:octocat", [], ttl=3600)

        sql = _sql(conn.executed)
        self.assertIn("on conflict (cache_key) do update", sql)
        self.assertIn("expires_at = excluded.expires_at", sql)

    async def test_database_failure_becomes_cache_error(self) -> None:
        error = OperationalError("SELECT 1", {}, Exception("connection refused"))
        cache = PostgresCacheStore(_DummyEngine(_DummyConn(error=error)))

        with self.assertRaises(CacheError):
            await cache.get("repos:octocat")
        with self.assertRaises(CacheError):
            await cache.put("repos:octocat", [])
