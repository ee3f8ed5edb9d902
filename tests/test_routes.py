from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

from fakes import FakeBadgeCompositor, FakeGitHubClient, build_service
from github_metrics.api.routes import create_app
from github_metrics.domain.exceptions import StorageError


class _FailingRepository:
    async def upsert(self, username, snapshot):
        raise StorageError("database is down")

    async def get_latest(self, username):
        raise StorageError("database is down")


class TestRoutes(AioHTTPTestCase):
    async def get_application(self) -> web.Application:
        self.github = FakeGitHubClient()
        self.service = build_service(github_client=self.github)
        return create_app(self.service, cors_allow_origin="https://example.com", badge_max_age=600)

    async def test_health(self) -> None:
        async with self.client.request("GET", "/_health") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(await resp.json(), {"status": "ok"})

    async def test_health_does_not_shadow_a_user_named_health(self) -> None:
        async with self.client.request("GET", "/health") as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()

        self.assertEqual(body["username"], "health")
        self.assertEqual(self.github.calls, [("health", None, None)])

    async def test_overview(self) -> None:
        async with self.client.request("GET", "/OctoCat") as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()

        self.assertEqual(body["username"], "octocat")
        self.assertEqual(body["metrics"]["totalStars"], 15)
        self.assertEqual(len(body["repositories"]), 3)

    async def test_cors_headers(self) -> None:
        async with self.client.request("GET", "/_health") as resp:
            self.assertEqual(resp.headers["Access-Control-Allow-Origin"], "https://example.com")

        async with self.client.request("OPTIONS", "/octocat/badge") as resp:
            self.assertEqual(resp.status, 204)
            self.assertIn("GET", resp.headers["Access-Control-Allow-Methods"])

    async def test_paginated_listing(self) -> None:
        async with self.client.request("GET", "/octocat/repos", params={"page": "2", "per_page": "10"}) as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()

        self.assertEqual(body["pagination"]["current_page"], 2)
        self.assertEqual(body["pagination"]["per_page"], 10)
        self.assertEqual(self.github.calls, [("octocat", 2, 10)])

    async def test_paginated_listing_defaults(self) -> None:
        async with self.client.request("GET", "/octocat/repos") as resp:
            body = await resp.json()

        self.assertEqual(body["pagination"]["current_page"], 1)
        self.assertEqual(body["pagination"]["per_page"], 30)

    async def test_bad_paging_is_400(self) -> None:
        async with self.client.request("GET", "/octocat/repos", params={"page": "two"}) as resp:
            self.assertEqual(resp.status, 400)
            self.assertIn("error", await resp.json())

    async def test_unknown_user_is_404(self) -> None:
        self.github.payload = {"message": "Not Found"}

        async with self.client.request("GET", "/ghost") as resp:
            self.assertEqual(resp.status, 404)
            self.assertEqual(await resp.json(), {"error": "User not found or API error"})

    async def test_metrics_not_found_then_found(self) -> None:
        async with self.client.request("GET", "/octocat/metrics") as resp:
            self.assertEqual(resp.status, 404)
            self.assertEqual(await resp.json(), {"error": "Metrics not found"})

        async with self.client.request("GET", "/octocat") as resp:
            self.assertEqual(resp.status, 200)

        async with self.client.request("GET", "/octocat/metrics") as resp:
            self.assertEqual(resp.status, 200)
            body = await resp.json()

        self.assertEqual(body["username"], "octocat")
        self.assertEqual(body["total_stars"], 15)
        self.assertEqual(body["most_used_language"], "Go")
        self.assertIn("updated_at", body)

    async def test_badge(self) -> None:
        async with self.client.request("GET", "/octocat/badge") as resp:
            self.assertEqual(resp.status, 200)
            self.assertEqual(resp.content_type, "image/svg+xml")
            self.assertEqual(resp.headers["Cache-Control"], "public, max-age=600")
            self.assertTrue((await resp.text()).startswith("<svg"))

    async def test_badge_failure_is_502(self) -> None:
        self.service.badge_compositor = FakeBadgeCompositor(fail=True)

        async with self.client.request("GET", "/octocat/badge") as resp:
            self.assertEqual(resp.status, 502)
            self.assertIn("error", await resp.json())

    async def test_storage_failure_is_500(self) -> None:
        self.service.metrics_repository = _FailingRepository()

        async with self.client.request("GET", "/octocat") as resp:
            self.assertEqual(resp.status, 500)
            self.assertEqual(await resp.json(), {"error": "database is down"})

    async def test_invalid_username_is_400(self) -> None:
        async with self.client.request("GET", "/bad.name") as resp:
            self.assertEqual(resp.status, 400)

    async def test_corrupt_cache_entry_is_500(self) -> None:
        await self.service.repos_fetcher.cache.put("repos:octocat", [{"stargazers_count": "many"}])

        async with self.client.request("GET", "/octocat") as resp:
            self.assertEqual(resp.status, 500)
            self.assertEqual(await resp.json(), {"error": "Internal server error"})

        self.assertEqual(self.github.calls, [])
