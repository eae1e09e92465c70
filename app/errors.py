"""Error taxonomy surfaced to API callers."""


class PollutedCitiesError(Exception):
    """Base exception for failures that reach the HTTP boundary."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PollutedCitiesError):
    """Raised for bad caller input or an upstream 400."""

    code = "VALIDATION_ERROR"
    status_code = 400


class AuthError(PollutedCitiesError):
    """Raised when the pollution API rejects our credentials."""

    code = "AUTHENTICATION_ERROR"
    status_code = 502


class RateLimitError(PollutedCitiesError):
    """Raised when the pollution API answers 429."""

    code = "RATE_LIMIT_ERROR"
    status_code = 503


class UpstreamUnavailable(PollutedCitiesError):
    """Raised when an upstream API cannot be reached at all."""

    code = "EXTERNAL_API_UNAVAILABLE"
    status_code = 503


class UpstreamError(PollutedCitiesError):
    """Raised when an upstream API answers with an unexpected status or payload."""

    code = "EXTERNAL_API_ERROR"
    status_code = 502


class InternalError(PollutedCitiesError):
    """Raised for unexpected failures inside the service."""

    code = "INTERNAL_ERROR"
    status_code = 500
