import aiohttp
import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set, Tuple

from github_metrics.domain.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_USER_AGENT = "github-metrics-edge"
DEFAULT_TIMEOUT_SECONDS = 10.0

class GitHubRestClient:
    """
    Client for the GitHub REST "list repositories for a user" endpoint.
    Performs exactly one request per call; retrying is left to the caller.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.api_url = api_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def repos_url(self, username: str) -> str:
        return f"{self.api_url}/users/{username}/repos"

    async def fetch_user_repos(
        self,
        session: aiohttp.ClientSession,
        username: str,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> Tuple[Any, Set[str]]:
        """
        Fetches one page of a user's public repositories.

        The decoded body is returned whatever the status code: GitHub signals a
        missing user with a JSON object instead of a list, and the caller decides
        what is acceptable.

        Returns:
            Tuple of (payload, link_rels). link_rels holds the rel names of the Link
            header, e.g. {"next", "last"}; payload is None when the body is not JSON.
        """
        params: Dict[str, int] = {}
        if page is not None:
            params["page"] = page
        if per_page is not None:
            params["per_page"] = per_page

        try:
            async with session.get(
                self.repos_url(username), params=params, headers=self.headers, timeout=self.timeout
            ) as response:
                link_rels = set(response.links.keys())
                if response.status >= 400:
                    logger.warning(f"GitHub answered {response.status} for user '{username}'.")
                try:
                    payload = await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError):
                    logger.warning(f"GitHub returned a non-JSON body for user '{username}'.")
                    payload = None
                return payload, link_rels
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailableError(f"GitHub request for '{username}' failed: {e}") from e
