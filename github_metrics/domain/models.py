from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

class RepositoryRecord(BaseModel):
    """
    Immutable view of a single entry of GitHub's /users/{username}/repos listing.
    Only the fields the metrics need are kept; everything else is ignored.
    """
    model_config = ConfigDict(frozen=True, extra='ignore')

    stargazers_count: int = Field(0, ge=0, description="Number of stargazers")
    forks_count: int = Field(0, ge=0, description="Number of forks")
    language: Optional[str] = Field(None, description="Primary language detected by GitHub")


class MetricsSnapshot(BaseModel):
    """
    Aggregates derived from a repository list. Recomputed on every request.
    Serialised with camelCase keys (by_alias=True).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_stars: int = Field(..., alias="totalStars")
    total_forks: int = Field(..., alias="totalForks")
    total_repos: int = Field(..., alias="totalRepos")
    most_used_language: str = Field(..., alias="mostUsedLanguage")


class PaginationState(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_page: int = Field(1, ge=1)
    per_page: int = Field(30, ge=1)
    has_next_page: bool = False
    has_previous_page: bool = False


class RepositoryPage(BaseModel):
    """Cache envelope for one page of a paginated listing."""
    model_config = ConfigDict(frozen=True)

    repositories: List[Dict[str, Any]]
    pagination: PaginationState


class PersistedMetricsRecord(BaseModel):
    """The latest metrics stored for a username."""
    model_config = ConfigDict(frozen=True)

    username: str
    total_stars: int
    total_forks: int
    total_repos: int
    most_used_language: str
    updated_at: datetime


class FetchResult(BaseModel):
    """Outcome of a cache-aside fetch."""
    model_config = ConfigDict(frozen=True)

    data: List[Dict[str, Any]]
    pagination: Optional[PaginationState] = None
    from_cache: bool = False
