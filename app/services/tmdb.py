"""Client for The Movie Database (TMDB) discover and external id endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import CatalogItem
from ..utils import media_type_for

logger = logging.getLogger(__name__)

BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/w1280"
PAGE_SIZE = 20

# Highest US certification allowed for each age range offered in the config.
MOVIE_CERTIFICATIONS = {
    "0-5": "G",
    "6-11": "PG",
    "12-15": "PG-13",
    "16-17": "R",
    "18+": "NC-17",
}
TV_CERTIFICATIONS = {
    "0-5": "TV-Y",
    "6-11": "TV-PG",
    "12-15": "TV-14",
    "16-17": "TV-MA",
    "18+": "TV-MA",
}


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    def _api_key(self, api_key: str | None) -> str:
        resolved = api_key or self._settings.tmdb_api_key
        if not resolved:
            raise ValueError("TMDB API key is required")
        return resolved

    async def discover(
        self,
        kind: str,
        providers: Sequence[int],
        age_range: str | None,
        sort_by: str | None,
        genre: int | None,
        api_key: str | None,
        language: str,
        skip: int,
        regions: Sequence[str],
        year: str | None = None,
        rating: str | None = None,
    ) -> list[CatalogItem]:
        """Return discover results for a catalog page.

        Each watch region is queried separately and the results merged in
        order, dropping duplicates.
        """

        media_type = media_type_for(kind)
        params = self._discover_params(
            media_type,
            providers=providers,
            age_range=age_range,
            sort_by=sort_by,
            genre=genre,
            api_key=self._api_key(api_key),
            language=language,
            skip=skip,
            year=year,
            rating=rating,
        )
        region_params = [
            {**params, "watch_region": region} for region in regions
        ] or [params]

        pages = await asyncio.gather(
            *(self._discover_page(media_type, page) for page in region_params)
        )

        seen: set[int] = set()
        items: list[CatalogItem] = []
        for results in pages:
            for entry in results:
                try:
                    item = CatalogItem.model_validate(entry)
                except ValidationError as exc:
                    logger.debug("Skipping malformed TMDB result: %s", exc)
                    continue
                if item.id in seen:
                    continue
                seen.add(item.id)
                items.append(item)
        return items

    async def _discover_page(
        self, media_type: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        response = await self._client.get(f"/discover/{media_type}", params=params)
        response.raise_for_status()
        payload = response.json()
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            return []
        return [entry for entry in results if isinstance(entry, dict)]

    @staticmethod
    def _discover_params(
        media_type: str,
        *,
        providers: Sequence[int],
        age_range: str | None,
        sort_by: str | None,
        genre: int | None,
        api_key: str,
        language: str,
        skip: int,
        year: str | None,
        rating: str | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "api_key": api_key,
            "language": language,
            "page": max(skip, 0) // PAGE_SIZE + 1,
            "sort_by": sort_by or "popularity.desc",
            "include_adult": "false",
        }
        if providers:
            params["with_watch_providers"] = "|".join(str(p) for p in providers)
        if genre is not None:
            params["with_genres"] = str(genre)

        certifications = TV_CERTIFICATIONS if media_type == "tv" else MOVIE_CERTIFICATIONS
        certification = certifications.get(age_range or "")
        if certification:
            params["certification_country"] = "US"
            params["certification.lte"] = certification

        if year:
            key = "first_air_date_year" if media_type == "tv" else "primary_release_year"
            params[key] = year

        if rating:
            low, _, high = rating.partition("-")
            if low.strip():
                params["vote_average.gte"] = low.strip()
            if high.strip():
                params["vote_average.lte"] = high.strip()
        return params

    async def fetch_external_ids(
        self, kind: str, tmdb_id: int, api_key: str | None = None
    ) -> dict[str, Any]:
        """Fetch cross-reference identifiers (IMDb, TVDB...) for an item."""

        endpoint = f"/{media_type_for(kind)}/{tmdb_id}/external_ids"
        response = await self._client.get(
            endpoint, params={"api_key": self._api_key(api_key)}
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            return {}
        return payload

    @staticmethod
    def build_backdrop_url(path: str | None) -> str | None:
        if not path:
            return None
        if path.startswith("http"):
            return path
        return f"{BACKDROP_BASE_URL}{path}"
