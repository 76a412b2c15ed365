from datetime import date

import pytest

from app.utils import (
    collation_key,
    extract_json_array,
    parse_iso_date,
    tmdb_locale,
    today_iso,
)


def test_extract_json_array_from_markdown():
    payload = """
    Here are your picks:
    ```json
    [{"title": "Heat", "reason": "Tense"}]
    ```
    """
    assert extract_json_array(payload) == [{"title": "Heat", "reason": "Tense"}]


def test_extract_json_array_from_bare_text():
    assert extract_json_array('Sure! [{"title": "Heat"}] Enjoy.') == [{"title": "Heat"}]


def test_extract_json_array_rejects_objects():
    with pytest.raises(ValueError):
        extract_json_array('{"title": "Heat"}')


def test_parse_iso_date_reads_leading_date():
    assert parse_iso_date("2024-05-01T10:00:00Z") == date(2024, 5, 1)
    assert parse_iso_date("") is None
    assert parse_iso_date(None) is None
    assert parse_iso_date("2024-13-40") is None


def test_collation_key_ignores_accents_and_case():
    assert collation_key("Élite")[0] == collation_key("elite")[0]
    assert collation_key("Élite") != collation_key("elite")


def test_tmdb_locale_defaults_to_english():
    assert tmdb_locale("fr") == "fr-FR"
    assert tmdb_locale("en") == "en-US"
    assert tmdb_locale("de") == "en-US"


def test_today_iso_uses_plain_date_format():
    value = today_iso("UTC")
    assert len(value) == 10
    assert parse_iso_date(value) is not None
    assert parse_iso_date(today_iso("local")) is not None
