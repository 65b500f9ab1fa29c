import json
import logging
from urllib.parse import quote

import pytest

from app.utils import (
    NOT_RATED,
    CatalogInfo,
    extract_catalog_info,
    format_rating,
    parse_config_parameters,
    primary_language,
    release_year,
)


def test_extract_catalog_info_variants():
    assert extract_catalog_info("tmdb-discover-movies-8") == CatalogInfo("movies", 8)
    assert extract_catalog_info("tmdb-discover-series-new-337") == CatalogInfo(
        "series", 337, "new"
    )
    assert extract_catalog_info("tmdb-discover-movies-popular-9").variant == "popular"


@pytest.mark.parametrize(
    "catalog_id",
    ["", "tmdb-discover-anime-8", "tmdb-discover-movies-", "tmdb-discover-movies-top-8"],
)
def test_extract_catalog_info_rejects_malformed_ids(catalog_id):
    with pytest.raises(ValueError, match="Invalid catalog id"):
        extract_catalog_info(catalog_id)


def test_parse_config_parameters_decodes_url_encoded_json():
    raw = quote(json.dumps({"rpdbkey": "t1-abc", "language": "de-DE"}))
    assert parse_config_parameters(raw) == {"rpdbkey": "t1-abc", "language": "de-DE"}


def test_parse_config_parameters_degrades_to_empty(caplog):
    with caplog.at_level(logging.ERROR):
        assert parse_config_parameters("%7Bnot-json") == {}
    assert "Error parsing configParameters" in caplog.text
    assert parse_config_parameters(None) == {}
    assert parse_config_parameters(quote("[1, 2]")) == {}


@pytest.mark.parametrize(
    ("vote_average", "expected"),
    [
        (7.666, "7.7"),
        (8.0, "8.0"),
        (7.25, "7.3"),
        (6.05, "6.0"),
        ("5.44", "5.4"),
        (None, NOT_RATED),
        (0, NOT_RATED),
    ],
)
def test_format_rating(vote_average, expected):
    assert format_rating(vote_average) == expected


def test_primary_language_and_release_year():
    assert primary_language("en-US") == "en"
    assert primary_language("fr") == "fr"
    assert release_year("2011-04-17") == "2011"
    assert release_year(None) == ""
