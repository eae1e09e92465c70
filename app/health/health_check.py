"""Reachability probes for the pollution and Wikipedia APIs."""

import httpx

from app.logging_config import logger
from app.models.health import ServiceStatus


async def is_pollution_api_available(client: httpx.AsyncClient) -> ServiceStatus:
    """Check the pollution API health endpoint.

    Args:
        client: HTTP client bound to the pollution API base URL.

    Returns:
        ServiceStatus.available when /healthz answers 2xx, else not_available.
    """
    try:
        response = await client.get("/healthz")
        response.raise_for_status()
        return ServiceStatus.available
    except httpx.HTTPError as exc:
        logger.error("POLLUTION_API_UNAVAILABLE", error=str(exc))
        return ServiceStatus.not_available


async def is_wikipedia_api_available(client: httpx.AsyncClient) -> ServiceStatus:
    """Check the Wikipedia summary API with a well-known page.

    Args:
        client: HTTP client bound to the summary API base URL.

    Returns:
        ServiceStatus.available when the page summary is served.
    """
    try:
        response = await client.get("London")
        return (
            ServiceStatus.available
            if response.status_code == 200 and "extract" in response.json()
            else ServiceStatus.not_available
        )
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("WIKIPEDIA_API_UNAVAILABLE", error=str(exc))
        return ServiceStatus.not_available
