"""Polluted cities pipeline: fetch, filter, normalize and enrich."""

from typing import Callable, Iterable, Optional

from prometheus_client import Counter

from app.errors import PollutedCitiesError
from app.logging_config import logger
from app.models.city import CityRecord, NormalizedCity, RawRecord
from app.pollution_service.client import PollutionApiClient
from app.validation.city_classifier import (
    Rejection,
    classify_city,
    clean_city_name,
    parse_pollution,
)
from app.wikipedia.description import DescriptionEnricher

COUNTRY_NAMES = {
    "PL": "Poland",
    "DE": "Germany",
    "ES": "Spain",
    "FR": "France",
}
SUPPORTED_COUNTRIES = list(COUNTRY_NAMES)

CITIES_REJECTED = Counter(
    "cities_rejected_total", "Pollution entries rejected as non-cities", ["reason"]
)


def country_name(country: Optional[str]) -> str:
    """Map a country code to its full name, keeping unknown codes as given."""
    if not country:
        return "Unknown"
    return COUNTRY_NAMES.get(country, country)


def by_pollution(city: NormalizedCity) -> float:
    """Sort key placing the most polluted cities first."""
    return -city.pollution


def normalize_city(record: RawRecord, country: Optional[str]) -> CityRecord:
    """Build the canonical city shape from a record that passed classification."""
    return CityRecord(
        name=clean_city_name(str(record.name)),
        country=country_name(country),
        pollution=parse_pollution(record.pollution) or 0.0,
    )


class CitiesPipeline:
    """Turns one page of raw pollution entries into enriched city records."""

    def __init__(
        self,
        client: PollutionApiClient,
        enricher: DescriptionEnricher,
        sort_key: Optional[Callable[[NormalizedCity], float]] = None,
    ):
        self._client = client
        self._enricher = enricher
        self._sort_key = sort_key

    async def get_polluted_cities(
        self, country: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> list[NormalizedCity]:
        """Return the valid, enriched cities of one upstream page.

        Args:
            country: Upstream country code, or None for an unfiltered page.
            page: 1-based page number passed through to the upstream.
            limit: Page size; never more than this many cities are returned.

        Returns:
            Enriched cities in upstream order, unless a sort key was given.
        """
        logger.info("CITIES_FETCH_STARTED", country=country, page=page, limit=limit)
        entries = await self._client.fetch_pollution_data(country, page, limit)

        cities = self.filter_valid_cities(entries, country)[:limit]
        enriched = [await self._enricher.enrich(city) for city in cities]
        if self._sort_key is not None:
            enriched.sort(key=self._sort_key)

        logger.info(
            "CITIES_FETCH_COMPLETED",
            country=country,
            page=page,
            limit=limit,
            cities=len(enriched),
        )
        return enriched

    def filter_valid_cities(
        self, entries: Iterable, country: Optional[str]
    ) -> list[CityRecord]:
        """Parse, classify and normalize raw entries, dropping non-cities."""
        cities = []
        total = 0
        for entry in entries:
            total += 1
            record = RawRecord.from_entry(entry)
            rejection = (
                Rejection.not_an_object
                if record is None
                else classify_city(record, country)
            )
            if rejection is not None:
                CITIES_REJECTED.labels(reason=rejection.value).inc()
                logger.debug(
                    "CITY_REJECTED",
                    country=country,
                    name=str(record.name) if record is not None else None,
                    reason=rejection.value,
                )
                continue
            cities.append(normalize_city(record, country))

        logger.info(
            "CITY_FILTERING_COMPLETED",
            country=country,
            total_entries=total,
            valid_cities=len(cities),
            filtered_out=total - len(cities),
        )
        return cities


async def get_cities_for_countries(
    pipeline: CitiesPipeline,
    countries: Iterable[str],
    page: int = 1,
    limit: int = 10,
) -> list[NormalizedCity]:
    """Concatenate per-country results, skipping countries that fail.

    Args:
        pipeline: Pipeline used for each country.
        countries: Country codes, fetched in order.
        page: Page number forwarded to every country.
        limit: Page size forwarded to every country.

    Returns:
        All cities of the countries that could be fetched.
    """
    cities = []
    for country in countries:
        try:
            cities.extend(await pipeline.get_polluted_cities(country, page, limit))
        except PollutedCitiesError as exc:
            logger.warning(
                "COUNTRY_FETCH_FAILED", country=country, code=exc.code, error=exc.message
            )
    return cities
