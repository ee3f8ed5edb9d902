from typing import Dict, Sequence

from github_metrics.domain.models import MetricsSnapshot, RepositoryRecord

NO_LANGUAGE = "None"


def calculate_metrics(repos: Sequence[RepositoryRecord]) -> MetricsSnapshot:
    """
    Reduces a repository list into star/fork totals and the dominant language.

    Repositories without a language are left out of the tally. When two
    languages share the highest count, the one seen first in ``repos`` wins.

    Args:
        repos (Sequence[RepositoryRecord]): Repositories of a single user (may be empty).

    Returns:
        MetricsSnapshot: The aggregate metrics.
    """
    language_counts: Dict[str, int] = {}
    for repo in repos:
        if repo.language:
            language_counts[repo.language] = language_counts.get(repo.language, 0) + 1

    most_used_language = NO_LANGUAGE
    best_count = 0
    # dicts keep first-insertion order, so only a strictly greater count replaces the leader
    for language, count in language_counts.items():
        if count > best_count:
            most_used_language, best_count = language, count

    return MetricsSnapshot(
        total_stars=sum(repo.stargazers_count for repo in repos),
        total_forks=sum(repo.forks_count for repo in repos),
        total_repos=len(repos),
        most_used_language=most_used_language,
    )
