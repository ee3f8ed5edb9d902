import logging
import re
from typing import Any, Dict, List

import aiohttp

from github_metrics.application.badge import BadgeCompositor
from github_metrics.application.cache_aside import CacheAsideFetcher
from github_metrics.domain.exceptions import InvalidRequestError, MetricsNotFoundError
from github_metrics.domain.metrics import calculate_metrics
from github_metrics.domain.models import MetricsSnapshot, PersistedMetricsRecord
from github_metrics.infrastructure.acl import DEFAULT_PAGE, DEFAULT_PER_PAGE, GitHubTranslator
from github_metrics.infrastructure.cache import CacheKeys
from github_metrics.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)

# GitHub logins: alphanumerics and single hyphens, at most 39 characters
USERNAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,38})$")
MAX_PER_PAGE = 100
DEFAULT_BADGE_CACHE_TTL = 3600


def normalize_username(username: str) -> str:
    """Lower-cases a login so cache keys, stored rows and upstream URLs agree."""
    normalized = (username or "").strip().lower()
    if not USERNAME_PATTERN.match(normalized):
        raise InvalidRequestError(f"Invalid username: '{username}'")
    return normalized


def validate_paging(page: int, per_page: int) -> None:
    if page < 1:
        raise InvalidRequestError("page must be >= 1")
    if not 1 <= per_page <= MAX_PER_PAGE:
        raise InvalidRequestError(f"per_page must be between 1 and {MAX_PER_PAGE}")


class MetricsService:
    """
    Service wiring the request flow shared by every route:
    cache-aside fetch -> metrics -> metrics sync -> (badge) composition.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        github_client: GitHubRestClient,
        cache,
        metrics_repository,
        badge_compositor: BadgeCompositor,
        badge_cache_ttl: int = DEFAULT_BADGE_CACHE_TTL,
    ):
        self.session = session
        self.github_client = github_client
        self.metrics_repository = metrics_repository
        self.badge_compositor = badge_compositor

        self.repos_fetcher = CacheAsideFetcher(cache)
        self.page_fetcher = CacheAsideFetcher(cache, store_pagination=True)
        self.badge_fetcher = CacheAsideFetcher(cache, ttl=badge_cache_ttl)

    @staticmethod
    def _metrics_for(repositories: List[Dict[str, Any]]) -> MetricsSnapshot:
        return calculate_metrics([GitHubTranslator.to_domain(raw) for raw in repositories])

    async def _sync_metrics(self, username: str, repositories: List[Dict[str, Any]]) -> MetricsSnapshot:
        metrics = self._metrics_for(repositories)
        await self.metrics_repository.upsert(username, metrics)
        return metrics

    async def get_user_overview(self, username: str) -> Dict[str, Any]:
        """Full repository listing of a user with freshly synced metrics."""
        username = normalize_username(username)
        result = await self.repos_fetcher.fetch(
            CacheKeys.user_repos(username),
            lambda: self.github_client.fetch_user_repos(self.session, username),
        )
        metrics = await self._sync_metrics(username, result.data)
        logger.info(f"Served overview for '{username}' (cached={result.from_cache}).")
        return {
            "username": username,
            "metrics": metrics.model_dump(by_alias=True),
            "repositories": result.data,
        }

    async def list_repositories(
        self, username: str, page: int = DEFAULT_PAGE, per_page: int = DEFAULT_PER_PAGE
    ) -> Dict[str, Any]:
        """
        One page of a user's repositories. The metrics describe this page only and
        are therefore not persisted.
        """
        username = normalize_username(username)
        validate_paging(page, per_page)
        result = await self.page_fetcher.fetch(
            CacheKeys.user_repos_page(username, page, per_page),
            lambda: self.github_client.fetch_user_repos(self.session, username, page=page, per_page=per_page),
            page=page,
            per_page=per_page,
        )
        metrics = self._metrics_for(result.data)
        return {
            "username": username,
            "metrics": metrics.model_dump(by_alias=True),
            "repositories": result.data,
            "pagination": result.pagination.model_dump() if result.pagination else None,
        }

    async def get_stored_metrics(self, username: str) -> PersistedMetricsRecord:
        username = normalize_username(username)
        record = await self.metrics_repository.get_latest(username)
        if record is None:
            raise MetricsNotFoundError(username=username)
        return record

    async def render_badge(self, username: str) -> str:
        username = normalize_username(username)
        result = await self.badge_fetcher.fetch(
            CacheKeys.user_badge(username),
            lambda: self.github_client.fetch_user_repos(self.session, username),
        )
        metrics = await self._sync_metrics(username, result.data)
        return await self.badge_compositor.compose(self.session, metrics)
