"""Layered poster resolution: RPDB, rendered rated posters, raw TMDB art."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx
from sqlalchemy.exc import SQLAlchemyError

from ..models import FieldResolution
from ..utils import format_rating, media_type_for, primary_language
from .cloud_storage import CloudPosterStore, cloud_poster_key
from .poster_cache import PosterCache, poster_cache_key

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
RPDB_BASE_URL = "https://api.ratingposterdb.com"

# RPDB tiers whose posters are not localised.
UNLOCALISED_TIERS = frozenset({"t0", "t1"})


def build_rpdb_url(
    kind: str,
    content_id: int | str,
    language: str,
    rpdb_key: str,
    *,
    base_url: str = RPDB_BASE_URL,
) -> str:
    """Return the RPDB poster URL for a TMDB item.

    The key's first dash-separated segment is its tier; only tiers other than
    ``t0``/``t1`` receive a ``lang`` parameter.
    """

    tier = rpdb_key.split("-")[0]
    rpdb_type = "series" if media_type_for(kind) == "tv" else "movie"
    url = (
        f"{base_url.rstrip('/')}/{rpdb_key}/tmdb/poster-default/"
        f"{rpdb_type}-{content_id}.jpg?fallback=true"
    )
    if tier in UNLOCALISED_TIERS:
        return url
    return f"{url}&lang={primary_language(language)}"


def build_poster_url(poster_path: str) -> str:
    return f"{POSTER_BASE_URL}{poster_path}"


class PosterResolver:
    """Resolve the poster shown for a catalog item.

    Tiers are tried in order and the first success wins:

    1. RPDB (only with an RPDB key), cached in the poster cache forever.
    2. A rendered poster with the rating overlaid, stored in cloud storage
       under ``<id>-<rating>`` and created on demand by the render service.
    3. The raw TMDB poster, which is always available once a poster path
       exists.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: PosterCache,
        cloud_store: CloudPosterStore,
        *,
        probe_timeout: float = 5.0,
        rpdb_base_url: str = RPDB_BASE_URL,
    ) -> None:
        self._client = http_client
        self._cache = cache
        self._cloud_store = cloud_store
        self._probe_timeout = probe_timeout
        self._rpdb_base_url = rpdb_base_url
        self._inflight: dict[str, asyncio.Future[FieldResolution[str]]] = {}

    async def resolve(
        self,
        content_id: int | str,
        poster_path: str | None,
        vote_average: float | None,
        kind: str,
        language: str,
        rpdb_key: str | None = None,
    ) -> str | None:
        """Return the poster URL, or ``None`` when the item has no poster."""

        resolution = await self.resolve_poster(
            content_id, poster_path, vote_average, kind, language, rpdb_key
        )
        return resolution.value

    async def resolve_poster(
        self,
        content_id: int | str,
        poster_path: str | None,
        vote_average: float | None,
        kind: str,
        language: str,
        rpdb_key: str | None = None,
    ) -> FieldResolution[str]:
        if not poster_path:
            return FieldResolution.absent()

        if rpdb_key:
            rpdb_url = await self._resolve_rpdb(content_id, kind, language, rpdb_key)
            if rpdb_url:
                return FieldResolution.resolved(rpdb_url, source="rpdb")

        fallback_url = build_poster_url(poster_path)
        rating = format_rating(vote_average)
        cloud_key = cloud_poster_key(content_id, rating)
        return await self._coalesce(
            cloud_key,
            lambda: self._resolve_rated_poster(cloud_key, fallback_url, rating),
        )

    async def _resolve_rpdb(
        self, content_id: int | str, kind: str, language: str, rpdb_key: str
    ) -> str | None:
        poster_id = poster_cache_key(content_id)
        cached = await self._cache.get(poster_id)
        if cached:
            logger.debug("Using cached poster URL for id %s", poster_id)
            return cached

        rpdb_url = build_rpdb_url(
            kind, content_id, language, rpdb_key, base_url=self._rpdb_base_url
        )
        try:
            response = await self._client.head(
                rpdb_url, timeout=self._probe_timeout, follow_redirects=True
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning(
                "Error fetching RPDB poster: %s. Falling back to TMDB poster with rating.",
                exc,
            )
            return None

        if response.status_code != 200:
            logger.warning(
                "RPDB poster probe for %s returned %s. Falling back to TMDB poster with rating.",
                poster_id,
                response.status_code,
            )
            return None

        logger.debug("RPDB poster found for id %s", poster_id)
        try:
            await self._cache.set(poster_id, rpdb_url)
        except SQLAlchemyError as exc:
            logger.warning("Failed to cache RPDB poster for %s: %s", poster_id, exc)
        return rpdb_url

    async def _resolve_rated_poster(
        self, cloud_key: str, fallback_url: str, rating: str
    ) -> FieldResolution[str]:
        try:
            cloud_url = await self._cloud_store.get_existing_url(cloud_key)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Error handling poster for %s: %s", cloud_key, exc)
            return FieldResolution.degraded(
                fallback_url, source="tmdb", error=str(exc)
            )
        if cloud_url:
            logger.debug("Using existing cloud poster for %s", cloud_key)
            return FieldResolution.resolved(cloud_url, source="cloud")

        try:
            result = await self._cloud_store.create_rated_poster(
                fallback_url, rating, cloud_key
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error(
                "Failed to create/upload rated poster for %s: %s", cloud_key, exc
            )
            return FieldResolution.degraded(
                fallback_url, source="tmdb", error=str(exc)
            )

        if result.success and result.url:
            logger.debug("Created new cloud poster for %s", cloud_key)
            return FieldResolution.resolved(result.url, source="rendered")
        return FieldResolution.degraded(
            fallback_url, source="tmdb", error="render service reported failure"
        )

    async def _coalesce(
        self,
        key: str,
        factory: Callable[[], Awaitable[FieldResolution[str]]],
    ) -> FieldResolution[str]:
        """Share one in-flight resolution between concurrent callers of ``key``."""

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(factory())
            self._inflight[key] = pending
            pending.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(pending)
