"""Heuristic rules deciding whether a pollution entry names a real city.

The upstream feed mixes genuine cities with monitoring stations, industrial
zones and labels mangled by encoding errors. Every rule below must pass for a
record to be kept; the first failing rule is reported as the rejection
reason. The vocabularies and patterns are tuned against labels observed in
the feed, and changing them changes which cities are served.
"""

import math
import re
from enum import Enum
from typing import Any, Optional

from app.models.city import RawRecord

CITY_NAME_MIN_LENGTH = 2
CITY_NAME_MAX_LENGTH = 50
COUNTRY_NAME_MIN_LENGTH = 2
COUNTRY_NAME_MAX_LENGTH = 50
POLLUTION_MIN = 0
POLLUTION_MAX = 200
AQI_MIN = 0
AQI_MAX = 500

# Only rejected when they appear as whole words.
NON_CITY_TERMS = [
    "zone",
    "area",
    "power plant",
    "unknown",
    "plant",
    "factory",
    "industrial",
    "test",
    "sample",
    "example",
    "invalid",
    "null",
    "undefined",
    "monitoring",
    "east",
    "west",
    "north",
    "south",
    "district",
    "station",
    "azul",
]

KNOWN_CORRUPTED_LABELS = [
    "powerplant-east",
    "power plant east",
    "powerplant east",
    "monitoring station",
    "monitoring station a",
    "monitoring station ä",
    "unknown area",
    "unknown âreã",
    "unknown area 22",
    "powereast",
    "power-east",
    "power east",
    "station a",
    "station ä",
    "station (area)",
    "area 22",
    "âreã 22",
    "area unknown",
    "zone x",
    "zone unknown",
    "zone area",
    "plant east",
    "plant station",
    "plant monitoring",
    "east station",
    "east area",
    "east zone",
    "monitoring area",
    "monitoring zone",
    "monitoring plant",
    "powerplânt-eâst",
    "monitôrìng statiòn ä",
    "kâtöwìce",
    "lúblïn",
    "zarãgoza",
    "barce[lo]+na",
    "berlin (district)",
    "munich (station)",
    "frankfurt (district)",
]

CORRUPTION_PATTERNS = [
    re.compile(r"power.*east", re.IGNORECASE),
    re.compile(r"east.*power", re.IGNORECASE),
    re.compile(r"monitoring.*station", re.IGNORECASE),
    re.compile(r"station.*monitoring", re.IGNORECASE),
    re.compile(r"unknown.*area", re.IGNORECASE),
    re.compile(r"area.*unknown", re.IGNORECASE),
    re.compile(r"\d+"),
    re.compile(r"âreã", re.IGNORECASE),
    re.compile(r"ôrìng", re.IGNORECASE),
    re.compile(r"\(district\)", re.IGNORECASE),
    re.compile(r"\(station\)", re.IGNORECASE),
]

_NON_CITY_TERM_PATTERNS = [
    re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE) for term in NON_CITY_TERMS
]
# Basic Latin, Latin-1 Supplement and Latin Extended-A letters.
_VALID_CHARACTERS = re.compile(r"[a-zA-Z\u00C0-\u017F\s\-'.()]+")
_ASCII_LETTER = re.compile(r"[a-zA-Z]")
_NUMERIC_OR_PUNCTUATION_ONLY = re.compile(r"[\d\s\-.]+")
_WHITESPACE_RUN = re.compile(r"\s+")
_DISALLOWED_IN_CLEAN_NAME = re.compile(r"[^\w\s\-'.,()]")


class Rejection(str, Enum):
    """Reason a record was not accepted as a city."""

    not_an_object = "not_an_object"
    missing_name = "missing_name"
    name_length = "name_length"
    non_city_term = "non_city_term"
    known_corrupted_label = "known_corrupted_label"
    corruption_pattern = "corruption_pattern"
    invalid_characters = "invalid_characters"
    no_letters = "no_letters"
    invalid_pollution = "invalid_pollution"


def parse_pollution(value: Any) -> Optional[float]:
    """Parse a pollution reading into a finite float.

    Args:
        value: Number or numeric string from the upstream payload.

    Returns:
        The parsed value, or None for booleans, non-numeric input, NaN and
        infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            number = float(value.strip())
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def is_valid_pollution_level(value: Any) -> bool:
    number = parse_pollution(value)
    return number is not None and POLLUTION_MIN <= number <= POLLUTION_MAX


def is_valid_aqi(value: Any) -> bool:
    number = parse_pollution(value)
    return number is not None and AQI_MIN <= int(number) <= AQI_MAX


def has_valid_characters(text: Any) -> bool:
    """Check that text only uses Latin letters and name punctuation."""
    if not text or not isinstance(text, str):
        return False
    return _VALID_CHARACTERS.fullmatch(text.strip()) is not None


def clean_city_name(city_name: str) -> str:
    """Collapse whitespace and drop characters that never belong in a name."""
    collapsed = _WHITESPACE_RUN.sub(" ", city_name.strip())
    return _DISALLOWED_IN_CLEAN_NAME.sub("", collapsed).strip()


def _contains_non_city_term(lowered: str) -> bool:
    return any(pattern.search(lowered) for pattern in _NON_CITY_TERM_PATTERNS)


def _has_letters(lowered: str) -> bool:
    if _NUMERIC_OR_PUNCTUATION_ONLY.fullmatch(lowered):
        return False
    return _ASCII_LETTER.search(lowered) is not None


def _name_rejection(name: Any) -> Optional[Rejection]:
    if not name or not isinstance(name, str):
        return Rejection.missing_name

    lowered = name.strip().lower()
    if not CITY_NAME_MIN_LENGTH <= len(lowered) <= CITY_NAME_MAX_LENGTH:
        return Rejection.name_length
    if _contains_non_city_term(lowered):
        return Rejection.non_city_term
    if any(label in lowered for label in KNOWN_CORRUPTED_LABELS):
        return Rejection.known_corrupted_label
    if any(pattern.search(lowered) for pattern in CORRUPTION_PATTERNS):
        return Rejection.corruption_pattern
    if not has_valid_characters(name):
        return Rejection.invalid_characters
    if not _has_letters(lowered):
        return Rejection.no_letters
    return None


def looks_like_city_name(city_name: Any) -> bool:
    return _name_rejection(city_name) is None


def looks_like_country_name(country_name: Any) -> bool:
    if not country_name or not isinstance(country_name, str):
        return False
    lowered = country_name.strip().lower()
    if not COUNTRY_NAME_MIN_LENGTH <= len(lowered) <= COUNTRY_NAME_MAX_LENGTH:
        return False
    if _contains_non_city_term(lowered):
        return False
    return has_valid_characters(country_name) and _has_letters(lowered)


def classify_city(record: Any, country: Optional[str] = None) -> Optional[Rejection]:
    """Run every city rule against a record.

    Args:
        record: A RawRecord, or a raw upstream entry to be parsed into one.
        country: Country code the record was requested for. The current rules
            do not depend on it.

    Returns:
        None when the record is a valid city, else the first failed rule.
    """
    if not isinstance(record, RawRecord):
        record = RawRecord.from_entry(record)
        if record is None:
            return Rejection.not_an_object

    rejection = _name_rejection(record.name)
    if rejection is not None:
        return rejection
    if not is_valid_pollution_level(record.pollution):
        return Rejection.invalid_pollution
    return None


def is_valid_city(record: Any, country: Optional[str] = None) -> bool:
    """Return True when the record passes every city rule."""
    return classify_city(record, country) is None
