"""Pydantic models describing catalog inputs and payloads."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ResolutionStatus = Literal["resolved", "degraded", "absent"]


@dataclass(slots=True, frozen=True)
class FieldResolution(Generic[T]):
    """Outcome of resolving one optional metadata field.

    ``degraded`` means an upstream step failed and ``value`` holds whatever
    less specific result was still available (possibly ``None``).
    """

    status: ResolutionStatus
    value: T | None = None
    source: str | None = None
    error: str | None = None

    @classmethod
    def resolved(cls, value: T, *, source: str | None = None) -> "FieldResolution[T]":
        return cls(status="resolved", value=value, source=source)

    @classmethod
    def degraded(
        cls,
        value: T | None = None,
        *,
        source: str | None = None,
        error: str | None = None,
    ) -> "FieldResolution[T]":
        return cls(status="degraded", value=value, source=source, error=error)

    @classmethod
    def absent(cls) -> "FieldResolution[T]":
        return cls(status="absent")


class CatalogItem(BaseModel):
    """A single result returned by the TMDB discover endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    title: str = Field(
        default="", validation_alias=AliasChoices("title", "name")
    )
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    genre_ids: list[int] = Field(default_factory=list)

    @field_validator("release_date", "first_air_date", "poster_path", "backdrop_path")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("genre_ids", mode="before")
    @classmethod
    def _coerce_genre_ids(cls, value: object) -> object:
        if value is None:
            return []
        return value

    def release_date_for(self, kind: str) -> str | None:
        """Return the date field relevant for the catalog kind."""

        return self.release_date if kind == "movies" else self.first_air_date


class CatalogConfig(BaseModel):
    """Decoded user configuration carried in catalog URLs."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tmdb_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("tmdbApiKey", "tmdb_api_key")
    )
    rpdb_key: str | None = Field(
        default=None, validation_alias=AliasChoices("rpdbkey", "rpdbKey", "rpdb_key")
    )
    fanart_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("fanartApiKey", "fanart_api_key"),
    )
    language: str = "en-US"
    watched_button: str | None = Field(
        default=None,
        validation_alias=AliasChoices("addWatchedTraktBtn", "watched_button"),
    )
    hide_trakt_history: bool = Field(
        default=False,
        validation_alias=AliasChoices("hideTraktHistory", "hide_trakt_history"),
    )
    trakt_username: str | None = Field(
        default=None,
        validation_alias=AliasChoices("traktUsername", "trakt_username"),
    )
    regions: list[str] = Field(default_factory=list)
    age_range: str | None = Field(
        default=None, validation_alias=AliasChoices("ageRange", "age_range")
    )
    sort_by: str | None = Field(
        default=None, validation_alias=AliasChoices("sortBy", "sort_by")
    )
    year: str | None = None
    rating: str | None = None

    @field_validator(
        "tmdb_api_key",
        "rpdb_key",
        "fanart_api_key",
        "watched_button",
        "trakt_username",
        "age_range",
        "sort_by",
        "year",
        "rating",
        mode="before",
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        stripped = str(value).strip()
        return stripped or None

    @field_validator("language", mode="before")
    @classmethod
    def _default_language(cls, value: object) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return "en-US"

    @field_validator("hide_trakt_history", mode="before")
    @classmethod
    def _parse_flag(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return False

    @field_validator("regions", mode="before")
    @classmethod
    def _parse_regions(cls, value: object) -> list[str]:
        if value is None or value == "":
            return []
        raw = value.split(",") if isinstance(value, str) else value
        if not isinstance(raw, (list, tuple)):
            raise ValueError("regions must be a list or comma separated string")
        return [str(entry).strip().upper() for entry in raw if str(entry).strip()]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CatalogConfig":
        """Build a config from a decoded blob, skipping malformed values."""

        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            invalid = {
                str(error["loc"][0]) for error in exc.errors() if error.get("loc")
            }
            logger.warning(
                "Ignoring invalid configuration values: %s", ", ".join(sorted(invalid))
            )
        cleaned = {key: value for key, value in payload.items() if key not in invalid}
        try:
            return cls.model_validate(cleaned)
        except ValidationError:
            return cls()


class MetaLink(BaseModel):
    """Action link shown on a Stremio meta card."""

    name: str
    category: str
    url: str


class BehaviorHints(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    default_video_id: str = Field(serialization_alias="defaultVideoId")


class NormalizedMeta(BaseModel):
    """Stremio-compatible meta record assembled for a catalog item."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Literal["movie", "series"]
    name: str
    poster: str | None = None
    background: str | None = None
    logo: str | None = None
    description: str | None = None
    release_info: str = Field(default="", serialization_alias="releaseInfo")
    imdb_rating: str = Field(serialization_alias="imdbRating")
    genres: list[str] = Field(default_factory=list)
    links: list[MetaLink] = Field(default_factory=list)
    behavior_hints: BehaviorHints = Field(serialization_alias="behaviorHints")

    def to_payload(self) -> dict[str, object]:
        """Return the meta object as served in catalog responses."""

        payload = self.model_dump(mode="json", by_alias=True)
        if not self.links:
            payload.pop("links", None)
        return payload
