"""FastAPI app.

Routes:
- ``/healthz``
- ``/api/discover``: curators ranked by topic
- ``/sitemap.xml``, ``/robots.txt``
- everything else: origin document, augmented on content routes

Collaborators are FastAPI dependencies so tests can override them.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from .clients.content_api import ContentApiClient
from .clients.origin import OriginClient
from .config.environment import EnvironmentProfile, EnvironmentTable, SiteContext, resolve_environment
from .config.settings import EdgeSettings, get_settings
from .domain.errors import NotFoundError, UpstreamError, ValidationError
from .lifespan import app_state, lifespan_manager
from .observability.logger import bind_request_context, get_logger
from .routing import classify_request
from .services.discovery_service import DiscoveryService
from .services.metadata_merger import MetadataMerger
from .services.page_service import PageService
from .services.response_policy import Audience, ResponseClass, ResponsePolicy
from .services.sitemap_service import SitemapService, render_sitemap
from .utils.robots import render_robots_txt

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    async with lifespan_manager():
        yield


app = FastAPI(title="Content Metadata Edge", version="0.1.0", lifespan=lifespan)


# --- dependencies ------------------------------------------------------------


def get_app_settings() -> EdgeSettings:
    return app_state.get("settings") or get_settings()


def get_response_policy(settings: EdgeSettings = Depends(get_app_settings)) -> ResponsePolicy:
    return app_state.get("policy") or ResponsePolicy.from_settings(settings)


def get_merger(settings: EdgeSettings = Depends(get_app_settings)) -> MetadataMerger:
    return app_state.get("merger") or MetadataMerger(
        html_description_length=settings.html_description_length,
        structured_description_length=settings.structured_description_length,
    )


def get_environment(request: Request, settings: EdgeSettings = Depends(get_app_settings)) -> EnvironmentProfile:
    table = app_state.get("environments") or EnvironmentTable.from_settings(settings)
    host = request.headers.get("x-forwarded-host") or request.url.hostname
    return resolve_environment(host, table)


def get_site(
    settings: EdgeSettings = Depends(get_app_settings),
    environment: EnvironmentProfile = Depends(get_environment),
) -> SiteContext:
    return SiteContext.build(settings, environment)


def get_content_api(
    settings: EdgeSettings = Depends(get_app_settings),
    environment: EnvironmentProfile = Depends(get_environment),
) -> ContentApiClient:
    return ContentApiClient(base_url=environment.content_api_base, timeout_seconds=settings.upstream_timeout_seconds)


def get_origin_client(settings: EdgeSettings = Depends(get_app_settings)) -> OriginClient:
    return app_state.get("origin") or OriginClient(
        base_url=settings.origin_base_url, timeout_seconds=settings.origin_timeout_seconds
    )


def get_audience(request: Request, policy: ResponsePolicy = Depends(get_response_policy)) -> Audience:
    return policy.audience(request.headers.get("user-agent"))


# --- error rendering ---------------------------------------------------------


def _error_response(status_code: int, payload: dict[str, Any], policy: Optional[ResponsePolicy] = None) -> JSONResponse:
    headers = (policy or ResponsePolicy(bot_agents=())).cache_headers(ResponseClass.ERROR)
    headers["Access-Control-Allow-Origin"] = "*"
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


@app.exception_handler(ValidationError)
async def _validation_error_handler(_: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(400, {"error": exc.info.message, "usage": exc.usage, "examples": exc.examples})


@app.exception_handler(NotFoundError)
async def _not_found_handler(_: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(404, {"error": exc.info.message, exc.key_name: exc.key})


@app.exception_handler(UpstreamError)
async def _upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.warning("upstream_error", path=request.url.path, error=exc.info.message, detail=exc.info.detail)
    return _error_response(502, {"error": "Upstream request failed", "details": exc.info.message})


# --- routes ------------------------------------------------------------------


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/api/discover")
async def discover(
    request: Request,
    topic: Optional[str] = None,
    q: Optional[str] = None,
    limit: Optional[str] = None,
    settings: EdgeSettings = Depends(get_app_settings),
    site: SiteContext = Depends(get_site),
    content: ContentApiClient = Depends(get_content_api),
    policy: ResponsePolicy = Depends(get_response_policy),
    audience: Audience = Depends(get_audience),
) -> JSONResponse:
    bind_request_context(path=request.url.path, site=site.base_url, audience=audience.value)
    service = DiscoveryService(
        content,
        site,
        search_cap=settings.discovery_search_cap,
        default_limit=settings.discovery_default_limit,
        max_limit=settings.discovery_max_limit,
        collections_page_size=settings.discovery_collections_page_size,
        max_collections=settings.discovery_max_collections,
    )
    result = await service.discover(topic or q, limit)
    return JSONResponse(
        content=service.render(result),
        headers=policy.cache_headers(ResponseClass.JSON_DISCOVERY, audience),
    )


@app.get("/sitemap.xml")
async def sitemap(
    settings: EdgeSettings = Depends(get_app_settings),
    site: SiteContext = Depends(get_site),
    content: ContentApiClient = Depends(get_content_api),
    policy: ResponsePolicy = Depends(get_response_policy),
) -> Response:
    bind_request_context(path="/sitemap.xml", site=site.base_url)
    service = SitemapService(
        content,
        site,
        page_size=settings.sitemap_page_size,
        max_pages=settings.sitemap_max_pages,
    )
    entries = await service.build()
    return Response(
        content=render_sitemap(entries),
        media_type="application/xml",
        headers=policy.cache_headers(ResponseClass.SITEMAP),
    )


@app.get("/robots.txt")
async def robots(
    settings: EdgeSettings = Depends(get_app_settings),
    site: SiteContext = Depends(get_site),
    policy: ResponsePolicy = Depends(get_response_policy),
) -> PlainTextResponse:
    return PlainTextResponse(
        render_robots_txt(site, settings.robots_ai_user_agents),
        headers=policy.cache_headers(ResponseClass.STATIC_TEXT),
    )


@app.get("/{full_path:path}")
async def document(
    request: Request,
    full_path: str,
    settings: EdgeSettings = Depends(get_app_settings),
    site: SiteContext = Depends(get_site),
    content: ContentApiClient = Depends(get_content_api),
    origin: OriginClient = Depends(get_origin_client),
    merger: MetadataMerger = Depends(get_merger),
    policy: ResponsePolicy = Depends(get_response_policy),
    audience: Audience = Depends(get_audience),
) -> Response:
    path = request.url.path
    route = classify_request(path, request.query_params, request.headers.get("accept"))
    bind_request_context(path=path, route=route.kind.value, site=site.base_url, audience=audience.value)

    pages = PageService(
        content,
        site,
        merger=merger,
        home_recent_size=settings.home_recent_content_size,
        collection_page_size=settings.discovery_collections_page_size,
    )

    if route.wants_json:
        try:
            payload = await pages.entity_json(route)
        except (NotFoundError, UpstreamError):
            raise
        except Exception as e:
            logger.exception("entity_json_failed", key=route.key)
            return _error_response(500, {"error": "Failed to build document", "details": str(e)}, policy)
        return JSONResponse(content=payload, headers=policy.cache_headers(ResponseClass.JSON_ENTITY, audience))

    result = await pages.serve_document(
        route,
        origin,
        path=path,
        query=request.url.query,
        request_headers=request.headers,
        policy=policy,
        audience=audience,
    )
    if audience == Audience.CRAWLER:
        logger.info("crawler_request", user_agent=request.headers.get("user-agent"), state=result.state.value)
    return StreamingResponse(
        result.body,
        status_code=result.status,
        headers=result.headers,
        background=BackgroundTask(result.close),
    )
