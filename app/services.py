"""Construction of the long-lived clients, cache and pipeline."""

from dataclasses import dataclass
from typing import Optional

import httpx

from app.cache.ttl_cache import TTLCache
from app.cities_service.cities import CitiesPipeline
from app.config import Settings
from app.pollution_service.client import REQUEST_TIMEOUT_S, PollutionApiClient
from app.wikipedia.description import (
    REQUEST_TIMEOUT_S as WIKIPEDIA_TIMEOUT_S,
    DescriptionEnricher,
)


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""

    settings: Settings
    pollution_http: httpx.AsyncClient
    wikipedia_http: httpx.AsyncClient
    pollution_client: PollutionApiClient
    enricher: DescriptionEnricher
    pipeline: CitiesPipeline

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        pollution_transport: Optional[httpx.AsyncBaseTransport] = None,
        wikipedia_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "Services":
        """Wire the service graph.

        Args:
            settings: Runtime configuration.
            pollution_transport: Transport override for the pollution API.
            wikipedia_transport: Transport override for the Wikipedia API.

        Returns:
            A fully wired Services instance.
        """
        pollution_http = httpx.AsyncClient(
            base_url=settings.pollution_api_base_url,
            timeout=REQUEST_TIMEOUT_S,
            headers={"Content-Type": "application/json"},
            transport=pollution_transport,
        )
        wikipedia_http = httpx.AsyncClient(
            base_url=settings.wikipedia_api_base_url,
            timeout=WIKIPEDIA_TIMEOUT_S,
            transport=wikipedia_transport,
        )
        pollution_client = PollutionApiClient(
            pollution_http,
            settings.pollution_api_username,
            settings.pollution_api_password,
        )
        enricher = DescriptionEnricher(
            wikipedia_http, TTLCache(), cache_ttl_s=settings.cache_ttl_s
        )
        return cls(
            settings=settings,
            pollution_http=pollution_http,
            wikipedia_http=wikipedia_http,
            pollution_client=pollution_client,
            enricher=enricher,
            pipeline=CitiesPipeline(pollution_client, enricher),
        )

    async def aclose(self) -> None:
        await self.pollution_http.aclose()
        await self.wikipedia_http.aclose()
