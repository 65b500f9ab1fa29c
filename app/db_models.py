"""SQLAlchemy ORM models backing the persistent state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class Genre(Base):
    """Localized genre names as published by TMDB.

    Rows are maintained by an external import job and only read here.
    """

    __tablename__ = "genres"
    __table_args__ = (
        UniqueConstraint(
            "genre_id", "media_type", "language", name="uq_genre_media_language"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    genre_id: Mapped[int] = mapped_column(Integer, index=True)
    genre_name: Mapped[str] = mapped_column(String(120))
    media_type: Mapped[str] = mapped_column(String(8))
    language: Mapped[str] = mapped_column(String(16))


class PosterCacheRecord(Base):
    """Previously verified poster URLs keyed by ``poster:<content id>``."""

    __tablename__ = "poster_cache"

    poster_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    poster_url: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
