"""Utility helpers for the TMDB Discover service."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal
from urllib.parse import unquote

logger = logging.getLogger(__name__)

Kind = Literal["movies", "series"]

NOT_RATED = "NR"

CATALOG_ID_RE = re.compile(r"^tmdb-discover-(movies|series)(-new|-popular)?-(\d+)$")


@dataclass(slots=True, frozen=True)
class CatalogInfo:
    """Components encoded in a discover catalog identifier."""

    catalog_type: Kind
    provider_id: int
    variant: str | None = None


def parse_config_parameters(config_parameters: str | None) -> dict[str, Any]:
    """Decode the URL-encoded JSON configuration blob.

    Malformed payloads are logged and treated as an empty configuration.
    """

    if not config_parameters:
        return {}
    try:
        parsed = json.loads(unquote(config_parameters))
    except ValueError as exc:
        logger.error("Error parsing configParameters: %s", exc)
        return {}
    if not isinstance(parsed, dict):
        logger.error(
            "Error parsing configParameters: expected an object, got %s",
            type(parsed).__name__,
        )
        return {}
    return parsed


def extract_catalog_info(catalog_id: str) -> CatalogInfo:
    """Return the catalog type and provider encoded in ``catalog_id``."""

    match = CATALOG_ID_RE.match(catalog_id or "")
    if not match:
        raise ValueError("Invalid catalog id")
    variant = match.group(2)
    return CatalogInfo(
        catalog_type=match.group(1),  # type: ignore[arg-type]
        provider_id=int(match.group(3)),
        variant=variant[1:] if variant else None,
    )


def media_type_for(kind: str) -> str:
    """Map a catalog kind onto TMDB's ``movie``/``tv`` vocabulary."""

    return "tv" if kind == "series" else "movie"


def meta_type_for(kind: str) -> str:
    """Map a catalog kind onto Stremio's ``movie``/``series`` meta types."""

    return "movie" if kind == "movies" else "series"


def format_rating(vote_average: float | str | None) -> str:
    """Format a TMDB vote average with one decimal place.

    Missing and zero averages yield :data:`NOT_RATED`. Ties round away from
    zero on the exact binary value so the output matches ``toFixed(1)``, which
    the render service uses when naming stored posters.
    """

    if not vote_average:
        return NOT_RATED
    try:
        value = Decimal(float(vote_average))
    except (TypeError, ValueError):
        return NOT_RATED
    return str(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def primary_language(language: str | None) -> str:
    """Return the primary subtag of a language tag (``en-US`` -> ``en``)."""

    return (language or "").split("-")[0]


def release_year(date_value: str | None) -> str:
    """Return the year portion of a TMDB ``YYYY-MM-DD`` date, or ``""``."""

    if not date_value:
        return ""
    return date_value.split("-")[0]
