import os
from dataclasses import dataclass
from typing import Optional

CACHE_BACKENDS = ("database", "memory")
METRICS_BACKENDS = ("database", "memory")


@dataclass(frozen=True)  # Immutable configuration
class Settings:
    database_url: Optional[str] = None
    github_token: Optional[str] = None
    github_api_url: str = "https://api.github.com"
    github_user_agent: str = "github-metrics-edge"
    badge_base_url: str = "https://img.shields.io/badge"
    request_timeout: float = 10.0
    badge_cache_ttl: int = 3600
    badge_max_age: int = 600
    cache_backend: str = "database"
    metrics_backend: str = "database"
    cors_allow_origin: str = "*"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    init_db: bool = False

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            database_url=os.getenv('DATABASE_URL') or None,
            github_token=os.getenv('GITHUB_TOKEN') or None,
            github_api_url=os.getenv('GITHUB_API_URL', 'https://api.github.com'),
            github_user_agent=os.getenv('GITHUB_USER_AGENT', 'github-metrics-edge'),
            badge_base_url=os.getenv('BADGE_BASE_URL', 'https://img.shields.io/badge'),
            request_timeout=float(os.getenv('REQUEST_TIMEOUT', '10')),
            badge_cache_ttl=int(os.getenv('BADGE_CACHE_TTL', '3600')),
            badge_max_age=int(os.getenv('BADGE_MAX_AGE', '600')),
            cache_backend=os.getenv('CACHE_BACKEND', 'database').lower(),
            metrics_backend=os.getenv('METRICS_BACKEND', 'database').lower(),
            cors_allow_origin=os.getenv('CORS_ALLOW_ORIGIN', '*'),
            host=os.getenv('HOST', '0.0.0.0'),
            port=int(os.getenv('PORT', '8080')),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            init_db=os.getenv('INIT_DB', '0') == '1',
        )

    @property
    def needs_database(self) -> bool:
        return self.cache_backend == 'database' or self.metrics_backend == 'database'

    def validate(self) -> None:
        """Raises ValueError describing the first invalid setting."""
        if self.cache_backend not in CACHE_BACKENDS:
            raise ValueError(f"CACHE_BACKEND must be one of {CACHE_BACKENDS}, got '{self.cache_backend}'.")
        if self.metrics_backend not in METRICS_BACKENDS:
            raise ValueError(f"METRICS_BACKEND must be one of {METRICS_BACKENDS}, got '{self.metrics_backend}'.")
        if self.needs_database and not self.database_url:
            raise ValueError("DATABASE_URL is not set in the environment.")
        if self.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive.")
