"""Serve TMDB discover catalogs as Stremio catalog payloads."""

from __future__ import annotations

import logging
from typing import Mapping

from ..config import Settings
from ..models import CatalogConfig
from ..utils import extract_catalog_info, parse_config_parameters
from .genres import GenreRepository
from .metadata import MetadataAssembler
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

VARIANT_SORT_ORDER = {
    "movies": {"new": "primary_release_date.desc", "popular": "popularity.desc"},
    "series": {"new": "first_air_date.desc", "popular": "popularity.desc"},
}


class CatalogService:
    """Glue between catalog requests, TMDB discover and metadata assembly."""

    def __init__(
        self,
        settings: Settings,
        tmdb_client: TMDBClient,
        genres: GenreRepository,
        assembler: MetadataAssembler,
    ) -> None:
        self._settings = settings
        self._tmdb = tmdb_client
        self._genres = genres
        self._assembler = assembler

    async def get_catalog(
        self,
        catalog_id: str,
        *,
        config_parameters: str | None = None,
        extra: Mapping[str, str] | None = None,
        origin: str = "",
    ) -> dict[str, object]:
        """Return ``{"metas": [...]}`` for a discover catalog page.

        Raises ``ValueError`` for malformed catalog ids and missing API keys;
        TMDB failures propagate as ``httpx.HTTPError``.
        """

        info = extract_catalog_info(catalog_id)
        kind = info.catalog_type
        config = CatalogConfig.from_payload(parse_config_parameters(config_parameters))
        tmdb_api_key = config.tmdb_api_key or self._settings.tmdb_api_key
        if not tmdb_api_key:
            raise ValueError("TMDB API key is required")
        config = config.model_copy(update={"tmdb_api_key": tmdb_api_key})

        extra = extra or {}
        skip = _parse_skip(extra.get("skip"))
        genre_id: int | None = None
        genre_name = (extra.get("genre") or "").strip()
        if genre_name:
            genre_id = await self._genres.lookup_genre_id(genre_name, kind)
            if genre_id is None:
                logger.debug("Unknown genre %s for %s", genre_name, kind)

        sort_by = config.sort_by
        if info.variant:
            sort_by = VARIANT_SORT_ORDER[kind][info.variant]

        items = await self._tmdb.discover(
            kind,
            [info.provider_id],
            config.age_range,
            sort_by,
            genre_id,
            tmdb_api_key,
            config.language,
            skip,
            config.regions,
            config.year,
            config.rating,
        )
        logger.info(
            "Discover returned %d items for %s (skip=%d)", len(items), catalog_id, skip
        )
        metas = await self._assembler.resolve_batch(
            items, kind, config.language, config, origin=origin
        )
        return {"metas": [meta.to_payload() for meta in metas]}


def _parse_skip(value: str | None) -> int:
    if not value:
        return 0
    try:
        return max(int(value), 0)
    except ValueError:
        return 0
