from __future__ import annotations

import asyncio

import httpx
from sqlalchemy import create_engine, inspect

from app.database import Database
from app.db_models import Genre
from app.services.cloud_storage import CloudPosterStore
from app.services.genres import GenreRepository
from app.services.poster_cache import DatabasePosterCache, poster_cache_key
from app.services.posters import PosterResolver, build_rpdb_url


async def _seed_genres(database: Database) -> None:
    async with database.session_factory() as session:
        session.add_all(
            [
                Genre(genre_id=28, genre_name="Action", media_type="movie", language="en-US"),
                Genre(genre_id=28, genre_name="Acción", media_type="movie", language="es-ES"),
                Genre(
                    genre_id=10759,
                    genre_name="Action & Adventure",
                    media_type="tv",
                    language="en-US",
                ),
            ]
        )
        await session.commit()


def test_create_all_creates_reference_and_cache_tables(tmp_path) -> None:
    database_path = tmp_path / "schema.db"
    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        tables = set(inspect(inspector_engine).get_table_names())
    finally:
        inspector_engine.dispose()

    assert {"genres", "poster_cache"} <= tables


def test_genre_lookups_respect_media_type_and_language(tmp_path) -> None:
    async def runner() -> None:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'genres.db'}")
        await database.create_all()
        await _seed_genres(database)
        genres = GenreRepository(database.session_factory)

        assert await genres.lookup_genre_name(28, "movies", "en-US") == "Action"
        assert await genres.lookup_genre_name(28, "movies", "es-ES") == "Acción"
        assert await genres.lookup_genre_name(28, "series", "en-US") is None
        assert await genres.lookup_genre_name(10759, "series", "en-US") == "Action & Adventure"
        assert await genres.lookup_genre_name(99, "movies", "en-US") is None

        assert await genres.lookup_genre_id("Action", "movies") == 28
        assert await genres.lookup_genre_id("Action & Adventure", "series") == 10759
        assert await genres.lookup_genre_id("Action", "series") is None

        await database.dispose()

    asyncio.run(runner())


def test_poster_cache_round_trip_and_overwrite(tmp_path) -> None:
    async def runner() -> None:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
        await database.create_all()
        cache = DatabasePosterCache(database.session_factory)
        key = poster_cache_key(550)

        assert key == "poster:550"
        assert await cache.get(key) is None

        await cache.set(key, "https://posters.example.com/old.jpg")
        await cache.set(key, "https://posters.example.com/new.jpg")

        assert await cache.get(key) == "https://posters.example.com/new.jpg"
        assert await cache.get(poster_cache_key(551)) is None

        await database.dispose()

    asyncio.run(runner())


def test_concurrent_cache_writes_for_same_key(tmp_path) -> None:
    async def runner() -> None:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
        await database.create_all()
        cache = DatabasePosterCache(database.session_factory)
        key = poster_cache_key(550)

        await asyncio.gather(
            *(cache.set(key, f"https://posters.example.com/{n}.jpg") for n in range(4))
        )

        assert (await cache.get(key) or "").startswith("https://posters.example.com/")
        await database.dispose()

    asyncio.run(runner())


def test_concurrent_rpdb_resolutions_share_the_database_cache(tmp_path) -> None:
    async def runner() -> None:
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'resolver.db'}")
        await database.create_all()
        cache = DatabasePosterCache(database.session_factory)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            resolver = PosterResolver(
                client,
                cache,
                CloudPosterStore(client, render_base_url="http://render.invalid"),
            )
            results = await asyncio.gather(
                resolver.resolve(550, "/a.jpg", 7.0, "movies", "en-US", "t2-k"),
                resolver.resolve(550, "/a.jpg", 7.0, "movies", "en-US", "t2-k"),
            )

        expected = build_rpdb_url("movies", 550, "en-US", "t2-k")
        assert results == [expected, expected]
        assert await cache.get(poster_cache_key(550)) == expected
        await database.dispose()

    asyncio.run(runner())
