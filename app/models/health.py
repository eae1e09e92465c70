"""Health check response models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class ServiceStatus(str, Enum):
    """Availability status for dependencies."""

    available = "available"
    not_available = "not_available"


class ExternalApis(BaseModel):
    """Reachability of the upstream APIs."""

    pollution_api: ServiceStatus
    wikipedia_api: ServiceStatus


class HealthResponse(BaseModel):
    """Basic liveness payload."""

    status: str
    timestamp: datetime
    uptime: float


class DetailedHealthResponse(HealthResponse):
    """Readiness payload including upstream reachability."""

    external_apis: ExternalApis
    version: str
    environment: str


class PingResponse(BaseModel):
    """Minimal ping payload."""

    message: str
    timestamp: datetime
