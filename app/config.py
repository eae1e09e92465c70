"""Environment-driven settings for the service."""

import os

from pydantic import BaseModel

DEFAULT_CACHE_TTL_S = 3600


def _positive_int_env(name: str, default: int) -> int:
    """Read a positive integer from the environment; anything else yields default."""
    raw = os.getenv(name)
    try:
        value = int(raw) if raw else 0
    except ValueError:
        return default
    return value if value > 0 else default


class Settings(BaseModel):
    """Runtime configuration, read once at startup."""

    pollution_api_base_url: str = "https://be-recruitment-task.onrender.com"
    pollution_api_username: str = "testuser"
    pollution_api_password: str = "testpass"
    wikipedia_api_base_url: str = "https://en.wikipedia.org/api/rest_v1/page/summary"
    cache_ttl_s: int = DEFAULT_CACHE_TTL_S
    log_level: str = "info"
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            pollution_api_base_url=os.getenv(
                "POLLUTION_API_BASE_URL", defaults.pollution_api_base_url
            ),
            pollution_api_username=os.getenv(
                "POLLUTION_API_USERNAME", defaults.pollution_api_username
            ),
            pollution_api_password=os.getenv(
                "POLLUTION_API_PASSWORD", defaults.pollution_api_password
            ),
            wikipedia_api_base_url=os.getenv(
                "WIKIPEDIA_API_BASE_URL", defaults.wikipedia_api_base_url
            ),
            cache_ttl_s=_positive_int_env("CACHE_TTL", DEFAULT_CACHE_TTL_S),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
            environment=os.getenv("APP_ENV", defaults.environment),
        )
