"""City records as received from the pollution API and as served to callers."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

NO_DESCRIPTION = "No description available"
DESCRIPTION_UNAVAILABLE = "Description unavailable"


def _first_present(entry: dict, *keys: str) -> Any:
    """Return the first non-empty value among keys (zero counts as present)."""
    for key in keys:
        value = entry.get(key)
        if value or value == 0:
            return value
    return entry.get(keys[-1])


class RawRecord(BaseModel):
    """Untrusted pollution entry, exactly as the upstream sent it."""

    model_config = ConfigDict(extra="ignore")

    name: Any = None
    pollution: Any = None
    aqi: Any = None
    coordinates: Any = None
    timestamp: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: Any) -> Optional["RawRecord"]:
        """Parse one upstream entry, resolving field aliases.

        Args:
            entry: A single element of the upstream ``results`` array.

        Returns:
            A RawRecord, or None when the entry is not a JSON object.
        """
        if not isinstance(entry, dict):
            return None
        timestamp = entry.get("timestamp") or entry.get("last_updated")
        return cls(
            name=_first_present(entry, "name", "city"),
            pollution=_first_present(entry, "pollution", "pollution_level"),
            aqi=entry.get("aqi"),
            coordinates=entry.get("coordinates"),
            timestamp=str(timestamp) if timestamp is not None else None,
        )


class CityRecord(BaseModel):
    """A classified and normalized city that has not been enriched yet."""

    name: str
    country: str
    pollution: float


class NormalizedCity(CityRecord):
    """City payload exposed by the API."""

    description: str


class CitiesResponse(BaseModel):
    """Paginated response for the cities endpoint."""

    page: int
    limit: int
    total: int
    cities: list[NormalizedCity]


class ErrorResponse(BaseModel):
    """Error payload returned for every failed request."""

    error: str
    code: str
