import sys
import logging
import aiohttp
from aiohttp import web
from dotenv import load_dotenv

from github_metrics.api.routes import SERVICE_KEY, create_app
from github_metrics.application.badge import BadgeCompositor
from github_metrics.application.metrics_service import MetricsService
from github_metrics.config import Settings
from github_metrics.infrastructure.cache import InMemoryCacheStore, PostgresCacheStore
from github_metrics.infrastructure.database import (
    InMemoryMetricsRepository,
    PostgresMetricsRepository,
    build_engine,
    ensure_schema,
)
from github_metrics.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)


def service_context(settings: Settings):
    """Cleanup context owning the client session and database engine for the app's lifetime."""

    async def context(app: web.Application):
        engine = build_engine(settings.database_url, timeout=settings.request_timeout) if settings.needs_database else None
        try:
            if engine is not None and settings.init_db:
                logger.info("Creating missing tables.")
                await ensure_schema(engine)

            cache = PostgresCacheStore(engine) if settings.cache_backend == "database" else InMemoryCacheStore()
            if settings.metrics_backend == "database":
                metrics_repository = PostgresMetricsRepository(engine)
            else:
                metrics_repository = InMemoryMetricsRepository()

            async with aiohttp.ClientSession() as session:
                app[SERVICE_KEY] = MetricsService(
                    session=session,
                    github_client=GitHubRestClient(
                        token=settings.github_token,
                        api_url=settings.github_api_url,
                        user_agent=settings.github_user_agent,
                        timeout=settings.request_timeout,
                    ),
                    cache=cache,
                    metrics_repository=metrics_repository,
                    badge_compositor=BadgeCompositor(settings.badge_base_url, timeout=settings.request_timeout),
                    badge_cache_ttl=settings.badge_cache_ttl,
                )
                logger.info(f"Service ready (cache={settings.cache_backend}, metrics={settings.metrics_backend}).")
                yield
        finally:
            if engine is not None:
                await engine.dispose()

    return context


def build_app(settings: Settings) -> web.Application:
    app = create_app(cors_allow_origin=settings.cors_allow_origin, badge_max_age=settings.badge_max_age)
    app.cleanup_ctx.append(service_context(settings))
    return app


def main():
    # Load environment variables from .env file
    load_dotenv()
    settings = Settings.from_env()

    # Configure logging
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    try:
        settings.validate()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is not set; unauthenticated GitHub rate limits apply.")

    web.run_app(build_app(settings), host=settings.host, port=settings.port, print=None)

if __name__ == "__main__":
    main()
