"""Entry point for the FastAPI-powered Stremio catalog addon."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from urllib.parse import parse_qsl

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import Database
from .services.catalog import CatalogService
from .services.cloud_storage import CloudPosterStore
from .services.fanart import FanartClient
from .services.genres import GenreRepository
from .services.metadata import MetadataAssembler
from .services.poster_cache import DatabasePosterCache
from .services.posters import PosterResolver
from .services.tmdb import TMDBClient

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    image_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0))
    )
    database = Database(settings.database_url)
    await database.create_all()

    tmdb = TMDBClient(settings, tmdb_http_client)
    genres = GenreRepository(database.session_factory)
    cloud_store = CloudPosterStore(
        image_http_client,
        render_base_url=settings.render_service_url,
        public_base_url=(
            str(settings.cloud_storage_url) if settings.cloud_storage_url else None
        ),
        render_timeout=settings.poster_render_timeout,
        lookup_timeout=settings.poster_probe_timeout,
    )
    poster_resolver = PosterResolver(
        image_http_client,
        DatabasePosterCache(database.session_factory),
        cloud_store,
        probe_timeout=settings.poster_probe_timeout,
        rpdb_base_url=str(settings.rpdb_api_url),
    )
    assembler = MetadataAssembler(
        poster_resolver,
        genres,
        tmdb,
        FanartClient(image_http_client, str(settings.fanart_api_url)),
    )

    app.state.catalog_service = CatalogService(settings, tmdb, genres, assembler)
    app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="TMDB discover catalogs for Stremio with rated posters",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_catalog_service(app: FastAPI) -> CatalogService:
    service = getattr(app.state, "catalog_service", None)
    if not isinstance(service, CatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    async def _catalog_endpoint(
        request: Request,
        content_type: str,
        catalog_id: str,
        *,
        config_parameters: str | None = None,
        extra: str | None = None,
    ) -> JSONResponse:
        if content_type not in {"movie", "series"}:
            raise HTTPException(status_code=400, detail="Unsupported content type")
        service = get_catalog_service(fastapi_app)
        extra_params = dict(parse_qsl(extra or "", keep_blank_values=False))
        origin = _resolve_external_base(request)
        try:
            payload = await service.get_catalog(
                catalog_id,
                config_parameters=config_parameters,
                extra=extra_params,
                origin=origin,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.warning("Upstream failure serving %s: %s", catalog_id, exc)
            raise HTTPException(
                status_code=502, detail="Upstream catalog request failed"
            ) from exc
        return JSONResponse(payload)

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}.json")
    async def catalog(
        request: Request, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, content_type, catalog_id)

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}/{extra}.json")
    async def catalog_with_extra(
        request: Request, content_type: str, catalog_id: str, extra: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, content_type, catalog_id, extra=extra)

    @fastapi_app.get("/{config_parameters}/catalog/{content_type}/{catalog_id}.json")
    async def configured_catalog(
        request: Request, config_parameters: str, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(
            request,
            content_type,
            catalog_id,
            config_parameters=config_parameters,
        )

    @fastapi_app.get(
        "/{config_parameters}/catalog/{content_type}/{catalog_id}/{extra}.json"
    )
    async def configured_catalog_with_extra(
        request: Request,
        config_parameters: str,
        content_type: str,
        catalog_id: str,
        extra: str,
    ) -> JSONResponse:
        return await _catalog_endpoint(
            request,
            content_type,
            catalog_id,
            config_parameters=config_parameters,
            extra=extra,
        )


def _resolve_external_base(request: Request) -> str:
    """Return the public URL the add-on is served under, honouring proxy headers."""

    headers = request.headers
    scheme = _first_forwarded_value(headers.get("x-forwarded-proto")) or request.url.scheme

    host = _first_forwarded_value(headers.get("x-forwarded-host"))
    if not host:
        host_header = headers.get("host")
        host = _first_forwarded_value(host_header) if host_header else None
    if not host:
        host = request.url.netloc

    port = _first_forwarded_value(headers.get("x-forwarded-port"))
    if port and ":" not in host:
        default_port = "443" if scheme == "https" else "80"
        if port != default_port:
            host = f"{host}:{port}"

    origin = f"{scheme}://{host}".rstrip("/")

    prefix = (
        _first_forwarded_value(headers.get("x-forwarded-prefix"))
        or request.scope.get("root_path")
        or ""
    )
    if prefix and not prefix.startswith("/"):
        prefix = f"/{prefix}"
    prefix = prefix.rstrip("/")

    return f"{origin}{prefix}" if prefix else origin


def _first_forwarded_value(header_value: str | None) -> str | None:
    if not header_value:
        return None
    return header_value.split(",", 1)[0].strip()


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
