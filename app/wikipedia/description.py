"""City descriptions from the Wikipedia page summary API."""

import html
import re
from typing import Optional
from urllib.parse import quote

import httpx
from prometheus_client import Counter

from app.cache.ttl_cache import TTLCache
from app.config import DEFAULT_CACHE_TTL_S
from app.logging_config import logger
from app.models.city import (
    DESCRIPTION_UNAVAILABLE,
    NO_DESCRIPTION,
    CityRecord,
    NormalizedCity,
)

REQUEST_TIMEOUT_S = 8.0
MAX_DESCRIPTION_LENGTH = 200

DESCRIPTION_LOOKUPS = Counter(
    "description_lookups_total", "City description lookups", ["result"]
)

_MISSING = object()
_WHITESPACE_RUN = re.compile(r"\s+")
_DISALLOWED_IN_SEARCH_TERM = re.compile(r"[^\w\s,.-]")


class DescriptionLookupError(Exception):
    """Raised when the summary API fails for reasons other than not found."""
    pass


def clean_search_term(term: str) -> str:
    collapsed = _WHITESPACE_RUN.sub(" ", term.strip())
    return _DISALLOWED_IN_SEARCH_TERM.sub("", collapsed).strip()


def truncate_description(description: str) -> str:
    """Shorten a summary to its first sentence or to at most 200 characters.

    Args:
        description: Decoded summary text.

    Returns:
        The first sentence with its period when it is short enough, otherwise
        the text cut at a word boundary with an ellipsis appended.
    """
    first_sentence = description.split(".")[0]
    if first_sentence and len(first_sentence) < MAX_DESCRIPTION_LENGTH:
        return first_sentence + "."

    truncated = description[:MAX_DESCRIPTION_LENGTH]
    if len(description) > MAX_DESCRIPTION_LENGTH and " " in truncated:
        truncated = truncated.rsplit(" ", 1)[0]
    truncated = truncated.strip()
    return truncated if truncated.endswith(".") else truncated + "..."


class DescriptionEnricher:
    """Looks up short city descriptions, caching results per city and country."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: TTLCache,
        cache_ttl_s: float = DEFAULT_CACHE_TTL_S,
    ):
        self._http = http_client
        self._cache = cache
        self._cache_ttl_s = cache_ttl_s

    async def describe(self, city_name: str, country_name: str) -> Optional[str]:
        """Return a short description for a city, or None if none exists.

        Search terms are tried from most to least specific. Not-found answers
        are cached as well, so repeat requests for unknown cities stay local.

        Args:
            city_name: Normalized city name.
            country_name: Full country name.

        Returns:
            The processed summary text, or None.

        Raises:
            DescriptionLookupError: The summary API failed or was unreachable.
        """
        cache_key = (city_name, country_name)
        cached = self._cache.get(cache_key, _MISSING)
        if cached is not _MISSING:
            DESCRIPTION_LOOKUPS.labels(result="hit").inc()
            logger.debug("DESCRIPTION_CACHE_HIT", city=city_name, country=country_name)
            return cached

        DESCRIPTION_LOOKUPS.labels(result="miss").inc()
        description = None
        for search_term in (
            f"{city_name}, {country_name}",
            city_name,
            f"{city_name} ({country_name})",
        ):
            description = await self._search(search_term)
            if description:
                logger.debug(
                    "DESCRIPTION_FOUND",
                    city=city_name,
                    search_term=search_term,
                    length=len(description),
                )
                break
        else:
            logger.debug("DESCRIPTION_NOT_FOUND", city=city_name, country=country_name)

        self._cache.set(cache_key, description, self._cache_ttl_s)
        return description

    async def enrich(self, city: CityRecord) -> NormalizedCity:
        """Attach a description to a city, degrading to a sentinel on failure."""
        try:
            description = await self.describe(city.name, city.country)
        except DescriptionLookupError as exc:
            DESCRIPTION_LOOKUPS.labels(result="error").inc()
            logger.warning("DESCRIPTION_LOOKUP_FAILED", city=city.name, error=str(exc))
            description = DESCRIPTION_UNAVAILABLE
        return NormalizedCity(
            **city.model_dump(), description=description or NO_DESCRIPTION
        )

    async def _search(self, search_term: str) -> Optional[str]:
        path = quote(clean_search_term(search_term), safe="")
        try:
            response = await self._http.get(path)
        except httpx.RequestError as exc:
            logger.warning("WIKIPEDIA_REQUEST_FAILED", search_term=search_term, error=str(exc))
            raise DescriptionLookupError("Wikipedia API unreachable") from exc

        if response.status_code == 404:
            logger.debug("WIKIPEDIA_PAGE_NOT_FOUND", search_term=search_term)
            return None
        if response.status_code >= 400:
            logger.warning(
                "WIKIPEDIA_BAD_STATUS", search_term=search_term, status=response.status_code
            )
            raise DescriptionLookupError(f"Wikipedia API error: {response.status_code}")

        try:
            extract = response.json().get("extract")
        except (ValueError, AttributeError) as exc:
            raise DescriptionLookupError("Invalid response format from Wikipedia API") from exc
        if not extract or not isinstance(extract, str):
            return None
        return truncate_description(html.unescape(extract))
