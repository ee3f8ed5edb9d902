from typing import Any, Dict, Iterable, Optional
from github_metrics.domain.models import PaginationState, RepositoryRecord

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 30

class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST responses into domain models.
    """

    @staticmethod
    def to_domain(raw_repo: Dict[str, Any]) -> RepositoryRecord:
        """
        Transforms one entry of the /users/{username}/repos listing into a RepositoryRecord.

        Args:
            raw_repo (Dict[str, Any]): The raw JSON object returned by GitHub.

        Returns:
            RepositoryRecord: The domain model instance used by the metrics calculator.

        Raises:
            pydantic.ValidationError: If a count is negative or not an integer.
        """
        return RepositoryRecord(
            stargazers_count=raw_repo.get('stargazers_count') or 0,
            forks_count=raw_repo.get('forks_count') or 0,
            language=raw_repo.get('language') or None,
        )

    @staticmethod
    def to_pagination(
        link_rels: Optional[Iterable[str]],
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> PaginationState:
        """Builds the paging flags from the rel names of the response's Link header."""
        rels = set(link_rels or ())
        return PaginationState(
            current_page=page or DEFAULT_PAGE,
            per_page=per_page or DEFAULT_PER_PAGE,
            has_next_page='next' in rels,
            has_previous_page='prev' in rels,
        )
