import logging
from aiohttp import web

from github_metrics.application.badge import SVG_MEDIA_TYPE
from github_metrics.application.metrics_service import MetricsService
from github_metrics.domain.exceptions import (
    BadgeFetchError,
    CacheError,
    InvalidRequestError,
    MetricsNotFoundError,
    StorageError,
    UpstreamNotFoundError,
    UpstreamUnavailableError,
)
from github_metrics.infrastructure.acl import DEFAULT_PAGE, DEFAULT_PER_PAGE

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("service", MetricsService)
BADGE_MAX_AGE_KEY = web.AppKey("badge_max_age", int)

# Exception type -> HTTP status. Order matters only for subclasses.
ERROR_STATUSES = (
    (InvalidRequestError, 400),
    (UpstreamNotFoundError, 404),
    (MetricsNotFoundError, 404),
    (UpstreamUnavailableError, 502),
    (BadgeFetchError, 502),
    (StorageError, 500),
    (CacheError, 500),
)

routes = web.RouteTableDef()


def _query_int(request: web.Request, name: str, default: int) -> int:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequestError(f"{name} must be an integer")


@routes.get("/_health")
async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


@routes.get("/{username}")
async def user_overview(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    return web.json_response(await service.get_user_overview(request.match_info["username"]))


@routes.get("/{username}/repos")
async def user_repositories(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    page = _query_int(request, "page", DEFAULT_PAGE)
    per_page = _query_int(request, "per_page", DEFAULT_PER_PAGE)
    body = await service.list_repositories(request.match_info["username"], page=page, per_page=per_page)
    return web.json_response(body)


@routes.get("/{username}/metrics")
async def user_metrics(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    record = await service.get_stored_metrics(request.match_info["username"])
    return web.json_response(record.model_dump(mode="json"))


@routes.get("/{username}/badge")
async def user_badge(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    svg = await service.render_badge(request.match_info["username"])
    return web.Response(
        text=svg,
        content_type=SVG_MEDIA_TYPE,
        headers={"Cache-Control": f"public, max-age={request.app[BADGE_MAX_AGE_KEY]}"},
    )


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Turns service exceptions into {"error": ...} JSON responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        for exc_type, status in ERROR_STATUSES:
            if isinstance(e, exc_type):
                if status >= 500:
                    logger.exception(f"{request.method} {request.path} failed: {e}")
                return web.json_response({"error": str(e)}, status=status)
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return web.json_response({"error": "Internal server error"}, status=500)


def cors_middleware(allow_origin: str):
    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": "GET, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }

    @web.middleware
    async def middleware(request: web.Request, handler):
        if request.method == "OPTIONS":
            return web.Response(status=204, headers=headers)
        try:
            response = await handler(request)
        except web.HTTPException as e:
            e.headers.update(headers)
            raise
        response.headers.update(headers)
        return response

    return middleware


def create_app(service: MetricsService = None, cors_allow_origin: str = "*", badge_max_age: int = 600) -> web.Application:
    """
    Builds the aiohttp application. The service may be attached later, typically
    from a cleanup context once the client session and engine exist.
    """
    app = web.Application(middlewares=[cors_middleware(cors_allow_origin), error_middleware])
    app[BADGE_MAX_AGE_KEY] = badge_max_age
    if service is not None:
        app[SERVICE_KEY] = service
    app.add_routes(routes)
    return app
