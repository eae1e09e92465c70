import math

import pytest

from app.models.city import RawRecord
from app.validation.city_classifier import (
    Rejection,
    classify_city,
    clean_city_name,
    has_valid_characters,
    is_valid_aqi,
    is_valid_city,
    is_valid_pollution_level,
    looks_like_city_name,
    looks_like_country_name,
    parse_pollution,
)


def record(name, pollution=57.1):
    return {"name": name, "pollution": pollution}


@pytest.mark.parametrize("name", ["Kraków", "Warsaw", "Hamburg", "Łódź", "Saint-Étienne"])
def test_known_good_labels_are_accepted(name):
    assert is_valid_city(record(name), "PL")


@pytest.mark.parametrize(
    "name",
    ["Unknown Area 22", "PowerPlant-East", "Monitoring Station A", "Berlin (District)"],
)
def test_known_bad_labels_are_rejected(name):
    assert not is_valid_city(record(name), "DE")


def test_classification_is_case_insensitive():
    for name in ["BARCELONA", "barcelona", "Barcelona"]:
        assert is_valid_city(record(name), "ES")
    for name in ["ZONE X", "zone x"]:
        assert not is_valid_city(record(name), "ES")


def test_non_city_terms_only_match_whole_words():
    assert is_valid_city(record("Eastwood"), "FR")
    assert is_valid_city(record("Southampton"), "FR")
    assert classify_city(record("Lyon East"), "FR") == Rejection.non_city_term
    assert classify_city(record("Industrial Park"), "FR") == Rejection.non_city_term


def test_curated_corrupted_labels_are_rejected():
    assert classify_city(record("Powereast"), "PL") == Rejection.known_corrupted_label
    assert classify_city(record("KÂTÖWÌCE"), "PL") == Rejection.known_corrupted_label
    assert classify_city(record("Lúblïn"), "PL") == Rejection.known_corrupted_label


def test_corruption_patterns_are_rejected():
    assert classify_city(record("Eastpowerville"), "PL") == Rejection.corruption_pattern
    assert classify_city(record("Lyon2"), "FR") == Rejection.corruption_pattern
    assert classify_city(record("Nice (Station)"), "FR") == Rejection.non_city_term


def test_mixed_script_names_are_rejected():
    assert classify_city(record("Москва"), "PL") == Rejection.invalid_characters
    assert classify_city(record("Kraków✓"), "PL") == Rejection.invalid_characters


def test_names_without_letters_are_rejected():
    assert classify_city(record("--"), "PL") == Rejection.no_letters
    assert classify_city(record("'.'"), "PL") == Rejection.no_letters


@pytest.mark.parametrize(
    "name, reason",
    [
        (None, Rejection.missing_name),
        ("", Rejection.missing_name),
        (42, Rejection.missing_name),
        ("A", Rejection.name_length),
        ("  B  ", Rejection.name_length),
        ("X" * 51, Rejection.name_length),
    ],
)
def test_name_presence_and_length(name, reason):
    assert classify_city(record(name), "PL") == reason


@pytest.mark.parametrize("pollution", [None, "abc", -0.1, 200.5, True, math.nan, math.inf, [1]])
def test_invalid_pollution_is_rejected(pollution):
    assert classify_city(record("Warsaw", pollution), "PL") == Rejection.invalid_pollution


@pytest.mark.parametrize("pollution", [0, 200, "57.1", " 12 ", 99.9])
def test_valid_pollution_is_accepted(pollution):
    assert is_valid_city(record("Warsaw", pollution), "PL")


def test_non_object_entries_are_rejected():
    assert classify_city("Warsaw", "PL") == Rejection.not_an_object
    assert classify_city(None, "PL") == Rejection.not_an_object


def test_accepts_parsed_raw_records_and_aliases():
    parsed = RawRecord.from_entry({"city": "Gdańsk", "pollution_level": "41"})
    assert parsed.name == "Gdańsk"
    assert is_valid_city(parsed, "PL")


def test_accepted_records_satisfy_output_invariants():
    names = ["Kraków", "Monitoring Station A", "Zaragoza", "Area 22", "Poznań", "Lyon2"]
    for name in names:
        entry = record(name, "88.4")
        if is_valid_city(entry, "PL"):
            assert has_valid_characters(name)
            assert 2 <= len(name.strip()) <= 50
            pollution = parse_pollution(entry["pollution"])
            assert math.isfinite(pollution) and 0 <= pollution <= 200


def test_helper_predicates():
    assert looks_like_city_name("Paris")
    assert not looks_like_city_name("Test Site")
    assert looks_like_country_name("Poland")
    assert not looks_like_country_name("Zone")
    assert is_valid_pollution_level("150")
    assert not is_valid_pollution_level("201")
    assert is_valid_aqi(500)
    assert not is_valid_aqi(501)
    assert not is_valid_aqi(None)


def test_clean_city_name_collapses_whitespace():
    assert clean_city_name("  Nowy   Sącz ") == "Nowy Sącz"
    assert clean_city_name("Bielsko-Biała*") == "Bielsko-Biała"
