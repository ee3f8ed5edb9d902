import logging
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

from pydantic import ValidationError

from github_metrics.domain.exceptions import UpstreamNotFoundError
from github_metrics.domain.models import FetchResult, PaginationState, RepositoryPage
from github_metrics.infrastructure.acl import GitHubTranslator
from github_metrics.infrastructure.cache import MISSING

logger = logging.getLogger(__name__)

UpstreamRequest = Callable[[], Awaitable[Tuple[Any, Set[str]]]]


class CacheAsideFetcher:
    """
    Read-through cache in front of the GitHub repository listing.

    A hit is returned as stored without touching GitHub or re-validating it. A miss
    triggers exactly one upstream request whose payload must translate into repository
    records before it is written back. With store_pagination the entry is a
    {repositories, pagination} envelope, otherwise the raw list.
    """

    def __init__(self, cache, ttl: Optional[int] = None, store_pagination: bool = False):
        self.cache = cache
        self.ttl = ttl
        self.store_pagination = store_pagination

    async def fetch(
        self,
        key: str,
        upstream: UpstreamRequest,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> FetchResult:
        cached = await self.cache.get(key)
        if cached is not MISSING:
            logger.debug(f"Cache hit for '{key}'.")
            return self._from_cache(cached)

        logger.info(f"Cache miss for '{key}', fetching from GitHub.")
        payload, link_rels = await upstream()

        if not self._is_repository_list(payload):
            logger.warning(f"Rejected upstream payload for '{key}': expected a list of repositories.")
            raise UpstreamNotFoundError()

        pagination = GitHubTranslator.to_pagination(link_rels, page, per_page)

        if self.store_pagination:
            envelope = RepositoryPage(repositories=payload, pagination=pagination)
            await self.cache.put(key, envelope.model_dump(), ttl=self.ttl)
        else:
            await self.cache.put(key, payload, ttl=self.ttl)

        return FetchResult(data=payload, pagination=pagination, from_cache=False)

    @staticmethod
    def _is_repository_list(payload: Any) -> bool:
        if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
            return False
        try:
            for item in payload:
                GitHubTranslator.to_domain(item)
        except ValidationError:
            return False
        return True

    @staticmethod
    def _from_cache(cached: Any) -> FetchResult:
        # hits are trusted: model_construct skips validation
        if isinstance(cached, dict) and 'repositories' in cached:
            pagination = cached.get('pagination')
            if isinstance(pagination, dict):
                pagination = PaginationState.model_construct(**pagination)
            return FetchResult.model_construct(
                data=cached['repositories'], pagination=pagination, from_cache=True
            )
        return FetchResult.model_construct(data=cached, pagination=None, from_cache=True)
