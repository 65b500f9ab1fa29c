"""Persistent cache of verified poster URLs."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import PosterCacheRecord

logger = logging.getLogger(__name__)


def poster_cache_key(content_id: int | str) -> str:
    """Return the cache key used for a TMDB content identifier."""

    return f"poster:{content_id}"


class PosterCache(Protocol):
    """Key/value capability used by the poster resolver."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, url: str) -> None:
        ...


class DatabasePosterCache:
    """Poster cache stored in the ``poster_cache`` table.

    Entries never expire; a stored URL is trusted until the row is removed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as session:
            stmt = select(PosterCacheRecord.poster_url).where(
                PosterCacheRecord.poster_id == key
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def set(self, key: str, url: str) -> None:
        """Store ``url`` under ``key``, replacing any existing entry.

        Concurrent writers for the same key may race on the insert; the loser
        updates the row written by the winner.
        """

        async with self._session_factory() as session:
            record = await session.get(PosterCacheRecord, key)
            if record is not None:
                record.poster_url = url
                await session.commit()
                return
            session.add(PosterCacheRecord(poster_id=key, poster_url=url))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                await session.execute(
                    update(PosterCacheRecord)
                    .where(PosterCacheRecord.poster_id == key)
                    .values(poster_url=url)
                )
                await session.commit()
        logger.debug("Cached poster URL for %s", key)
