"""Assemble Stremio meta records for TMDB discover results."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from ..models import (
    BehaviorHints,
    CatalogConfig,
    CatalogItem,
    FieldResolution,
    MetaLink,
    NormalizedMeta,
)
from ..utils import format_rating, meta_type_for, release_year
from .fanart import FanartClient
from .genres import GenreRepository
from .posters import PosterResolver
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

SUPPORTED_KINDS = frozenset({"movies", "series"})


class MetadataAssembler:
    """Resolve posters, logos, identifiers and genres for catalog items."""

    def __init__(
        self,
        poster_resolver: PosterResolver,
        genres: GenreRepository,
        tmdb_client: TMDBClient,
        fanart_client: FanartClient,
    ) -> None:
        self._posters = poster_resolver
        self._genres = genres
        self._tmdb = tmdb_client
        self._fanart = fanart_client

    async def resolve_batch(
        self,
        items: Sequence[CatalogItem],
        kind: str,
        language: str,
        config: CatalogConfig,
        *,
        origin: str = "",
    ) -> list[NormalizedMeta]:
        """Return one meta per item that could be processed.

        Items are resolved concurrently and items that fail are dropped, so
        the output may be shorter than ``items``.
        """

        if kind not in SUPPORTED_KINDS:
            raise ValueError(f"Unsupported catalog kind: {kind}")

        results = await asyncio.gather(
            *(
                self._resolve_item_safely(item, kind, language, config, origin)
                for item in items
            )
        )
        return [meta for meta in results if meta is not None]

    async def _resolve_item_safely(
        self,
        item: CatalogItem,
        kind: str,
        language: str,
        config: CatalogConfig,
        origin: str,
    ) -> NormalizedMeta | None:
        try:
            return await self.resolve_item(item, kind, language, config, origin=origin)
        except Exception as exc:
            logger.exception("Error processing content item %s: %s", item.id, exc)
            return None

    async def resolve_item(
        self,
        item: CatalogItem,
        kind: str,
        language: str,
        config: CatalogConfig,
        *,
        origin: str = "",
    ) -> NormalizedMeta:
        poster, (external_ids, logo), genres = await asyncio.gather(
            self._posters.resolve(
                item.id,
                item.poster_path,
                item.vote_average,
                kind,
                language,
                config.rpdb_key,
            ),
            self._resolve_ids_and_logo(item, kind, language, config),
            self.resolve_genres(item.genre_ids, kind, language),
        )

        imdb_id = (external_ids.value or {}).get("imdb_id")
        meta_id = imdb_id if isinstance(imdb_id, str) and imdb_id else f"tmdb:{item.id}"
        return NormalizedMeta(
            id=meta_id,
            type=meta_type_for(kind),
            name=item.title,
            poster=poster,
            background=TMDBClient.build_backdrop_url(item.backdrop_path),
            logo=logo.value,
            description=item.overview,
            release_info=release_year(item.release_date_for(kind)),
            imdb_rating=format_rating(item.vote_average),
            genres=genres,
            links=self._watched_links(item, kind, config, origin),
            behavior_hints=BehaviorHints(default_video_id=meta_id),
        )

    async def _resolve_ids_and_logo(
        self, item: CatalogItem, kind: str, language: str, config: CatalogConfig
    ) -> tuple[FieldResolution[dict[str, Any]], FieldResolution[str]]:
        # fanart.tv keys series by TheTVDB id, which only the cross-reference
        # lookup provides.
        if kind != "series":
            external_ids, logo = await asyncio.gather(
                self.resolve_external_ids(item, kind, config),
                self.resolve_logo(item.id, kind, language, config),
            )
            return external_ids, logo

        external_ids = await self.resolve_external_ids(item, kind, config)
        tvdb_id = (external_ids.value or {}).get("tvdb_id")
        if not tvdb_id:
            return external_ids, FieldResolution.absent()
        logo = await self.resolve_logo(tvdb_id, kind, language, config)
        return external_ids, logo

    async def resolve_logo(
        self,
        media_id: int | str,
        kind: str,
        language: str,
        config: CatalogConfig,
    ) -> FieldResolution[str]:
        if not config.fanart_api_key:
            return FieldResolution.absent()
        try:
            logo = await self._fanart.fetch_logo(
                media_id, language, config.fanart_api_key, kind=kind
            )
        except Exception as exc:
            logger.warning("Error fetching logo for %s %s: %s", kind, media_id, exc)
            return FieldResolution.degraded(error=str(exc))
        if not logo:
            return FieldResolution.absent()
        return FieldResolution.resolved(logo, source="fanart")

    async def resolve_external_ids(
        self, item: CatalogItem, kind: str, config: CatalogConfig
    ) -> FieldResolution[dict[str, Any]]:
        if not config.tmdb_api_key:
            return FieldResolution.absent()
        try:
            external_ids = await self._tmdb.fetch_external_ids(
                kind, item.id, config.tmdb_api_key
            )
        except Exception as exc:
            logger.error(
                "Error fetching external IDs for TMDB ID %s: %s", item.id, exc
            )
            return FieldResolution.degraded(error=str(exc))
        return FieldResolution.resolved(external_ids, source="tmdb")

    async def resolve_genres(
        self, genre_ids: Sequence[int], kind: str, language: str
    ) -> list[str]:
        """Return genre names in input order, skipping ids that fail to resolve."""

        if not genre_ids:
            return []
        results = await asyncio.gather(
            *(
                self._genres.lookup_genre_name(genre_id, kind, language)
                for genre_id in genre_ids
            ),
            return_exceptions=True,
        )
        names: list[str] = []
        for genre_id, result in zip(genre_ids, results):
            if isinstance(result, Exception):
                logger.debug("Genre lookup failed for %s: %s", genre_id, result)
                continue
            if result:
                names.append(result)
        return names

    @staticmethod
    def _watched_links(
        item: CatalogItem, kind: str, config: CatalogConfig, origin: str
    ) -> list[MetaLink]:
        if not (
            config.watched_button
            and config.hide_trakt_history
            and config.trakt_username
        ):
            return []
        return [
            MetaLink(
                name=config.watched_button,
                category="Trakt",
                url=f"{origin}/updateWatched/{config.trakt_username}/{kind}/{item.id}",
            )
        ]
