"""Access to rendered "rated poster" images kept in cloud storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RenderResult:
    """Response of the render-and-upload call."""

    success: bool
    url: str | None = None


def cloud_poster_key(content_id: int | str, rating: str) -> str:
    """Return the storage key of a rendered poster (``<id>-<rating>``)."""

    return f"{content_id}-{rating}"


class CloudPosterStore:
    """Looks up and requests rendered posters.

    Existing images are found with a ``HEAD`` against the public bucket URL.
    New ones are produced by the render service, which downloads the source
    poster, overlays the rating and uploads the result under the given key.
    """

    _RENDER_PATH = "/cache-rated-poster"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        render_base_url: str,
        public_base_url: str | None = None,
        render_timeout: float = 30.0,
        lookup_timeout: float = 5.0,
    ) -> None:
        self._client = http_client
        self._render_base_url = render_base_url.rstrip("/")
        self._public_base_url = (
            public_base_url.rstrip("/") if public_base_url else None
        )
        self._render_timeout = render_timeout
        self._lookup_timeout = lookup_timeout

    def public_url(self, cloud_key: str) -> str | None:
        """Return where a rendered poster for ``cloud_key`` would be served."""

        if not self._public_base_url:
            return None
        return f"{self._public_base_url}/posters/{cloud_key}.jpg"

    async def get_existing_url(self, cloud_key: str) -> str | None:
        """Return the URL of an already rendered poster, if one exists.

        Transport errors propagate to the caller.
        """

        url = self.public_url(cloud_key)
        if url is None:
            return None
        response = await self._client.head(url, timeout=self._lookup_timeout)
        if response.status_code == 200:
            return url
        if response.status_code not in {403, 404}:
            logger.debug(
                "Unexpected status %s checking cloud poster %s",
                response.status_code,
                cloud_key,
            )
        return None

    async def create_rated_poster(
        self, source_url: str, rating: str, cloud_key: str
    ) -> RenderResult:
        """Ask the render service to build and upload a rated poster."""

        response = await self._client.post(
            f"{self._render_base_url}{self._RENDER_PATH}",
            json={"posterUrl": source_url, "rating": rating, "contentId": cloud_key},
            timeout=self._render_timeout,
        )
        if response.status_code >= 400:
            logger.warning(
                "Render service rejected %s with status %s",
                cloud_key,
                response.status_code,
            )
            return RenderResult(success=False)
        try:
            data = response.json()
        except ValueError:
            logger.warning("Render service returned invalid JSON for %s", cloud_key)
            return RenderResult(success=False)
        if not isinstance(data, dict):
            return RenderResult(success=False)
        url = data.get("url")
        return RenderResult(
            success=bool(data.get("success")),
            url=url if isinstance(url, str) and url else None,
        )
