"""Lookups against the TMDB genre reference table."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import Genre
from ..utils import media_type_for


class GenreRepository:
    """Read-only access to localized genre names.

    Database errors are not handled here; callers decide whether a failed
    lookup matters.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def lookup_genre_id(self, genre_name: str, kind: str) -> int | None:
        """Return the TMDB genre id for a displayed genre name."""

        async with self._session_factory() as session:
            stmt = (
                select(Genre.genre_id)
                .where(
                    Genre.genre_name == genre_name,
                    Genre.media_type == media_type_for(kind),
                )
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def lookup_genre_name(
        self, genre_id: int, kind: str, language: str
    ) -> str | None:
        """Return the localized name of ``genre_id`` or ``None``."""

        async with self._session_factory() as session:
            stmt = (
                select(Genre.genre_name)
                .where(
                    Genre.genre_id == genre_id,
                    Genre.media_type == media_type_for(kind),
                    Genre.language == language,
                )
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
