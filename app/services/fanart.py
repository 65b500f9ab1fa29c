"""Logo lookups against the fanart.tv v3 API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..utils import media_type_for, primary_language

logger = logging.getLogger(__name__)

FANART_BASE_URL = "https://webservice.fanart.tv/v3"


class FanartClient:
    """Fetches clear logos for movies and series."""

    _LOGO_KEYS = {
        "movie": ("hdmovielogo", "movielogo"),
        "tv": ("hdtvlogo", "clearlogo"),
    }

    def __init__(
        self, http_client: httpx.AsyncClient, base_url: str = FANART_BASE_URL
    ) -> None:
        self._client = http_client
        self._base_url = base_url.rstrip("/")

    async def fetch_logo(
        self,
        media_id: int | str,
        language: str,
        api_key: str,
        *,
        kind: str = "movies",
    ) -> str | None:
        """Return the best logo URL for ``language`` or ``None``.

        Movies are keyed by their TMDB id and series by their TheTVDB id. A
        404 means fanart.tv knows nothing about the item; any other HTTP
        failure is raised.
        """

        media_type = media_type_for(kind)
        url = f"{self._base_url}/{'tv' if media_type == 'tv' else 'movies'}/{media_id}"
        response = await self._client.get(url, params={"api_key": api_key})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            return None

        logos: list[dict[str, Any]] = []
        for key in self._LOGO_KEYS[media_type]:
            entries = payload.get(key)
            if isinstance(entries, list):
                logos.extend(
                    entry
                    for entry in entries
                    if isinstance(entry, dict) and isinstance(entry.get("url"), str)
                )
        logo = self._select_logo(logos, primary_language(language))
        if logo is None:
            logger.debug("No fanart logo for %s %s", media_type, media_id)
            return None
        return logo["url"].replace("http://", "https://", 1)

    @staticmethod
    def _select_logo(
        logos: list[dict[str, Any]], language: str
    ) -> dict[str, Any] | None:
        if not logos:
            return None

        def likes(entry: dict[str, Any]) -> int:
            try:
                return int(entry.get("likes") or 0)
            except (TypeError, ValueError):
                return 0

        for preferred in (language, "en"):
            matches = [entry for entry in logos if entry.get("lang") == preferred]
            if matches:
                return max(matches, key=likes)
        return max(logos, key=likes)
