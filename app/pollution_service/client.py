"""Authenticated client for the upstream pollution API."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from app.errors import (
    AuthError,
    RateLimitError,
    UpstreamError,
    UpstreamUnavailable,
    ValidationError,
)
from app.logging_config import logger

REQUEST_TIMEOUT_S = 10.0
LOGIN_PATH = "/auth/login"
REFRESH_PATH = "/auth/refresh"
POLLUTION_PATH = "/pollution"


class AuthState(str, Enum):
    """Where the client is in its authentication lifecycle."""

    unauthenticated = "unauthenticated"
    authenticated = "authenticated"
    token_expired = "token_expired"
    refreshing = "refreshing"
    logging_in = "logging_in"


@dataclass
class TokenState:
    """Access and refresh tokens held for the lifetime of the process.

    Not safe for concurrent use: two requests hitting a 401 at the same time
    would both log in again.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    state: AuthState = AuthState.unauthenticated

    def store(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self.access_token = access_token
        if refresh_token:
            self.refresh_token = refresh_token
        self.state = AuthState.authenticated

    def expire(self) -> None:
        self.access_token = None
        self.state = AuthState.token_expired

    def drop_refresh_token(self) -> None:
        self.refresh_token = None


class PollutionApiClient:
    """Fetches pollution pages, keeping a bearer token alive.

    A 401 on the data request triggers one token recovery (refresh when a
    refresh token is held, login otherwise or when refreshing fails) and a
    single retry of the original request.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        username: str,
        password: str,
        tokens: Optional[TokenState] = None,
    ):
        self._http = http_client
        self._username = username
        self._password = password
        self.tokens = tokens or TokenState()

    async def fetch_pollution_data(
        self, country: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> list[Any]:
        """Fetch one page of raw pollution entries.

        Args:
            country: Optional upstream country code filter.
            page: 1-based page number.
            limit: Page size.

        Returns:
            The raw entries of the page, untouched.

        Raises:
            AuthError: Credentials were rejected, or the retry also got a 401.
            RateLimitError: The upstream answered 429.
            ValidationError: The upstream answered 400.
            UpstreamUnavailable: No response could be obtained.
            UpstreamError: Any other unexpected status or payload.
        """
        params = {
            key: value
            for key, value in (("country", country), ("page", page), ("limit", limit))
            if value
        }
        logger.info("POLLUTION_FETCH", **params)

        if not self.tokens.access_token:
            await self._acquire_token()

        response = await self._get_pollution(params, attempt=1)
        if response.status_code == 401:
            logger.warning("POLLUTION_TOKEN_EXPIRED", **params)
            self.tokens.expire()
            await self._acquire_token()
            response = await self._get_pollution(params, attempt=2)
            if response.status_code == 401:
                self.tokens.expire()
                logger.error("POLLUTION_AUTH_RETRY_REJECTED", **params)
                raise AuthError("Authentication failed with pollution API")

        return self._parse_pollution_response(response, params)

    async def _get_pollution(self, params: dict, attempt: int) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await self._http.get(
                POLLUTION_PATH,
                params=params,
                headers={"Authorization": f"Bearer {self.tokens.access_token}"},
            )
        except httpx.RequestError as exc:
            logger.warning(
                "POLLUTION_REQUEST_FAILED", **params, attempt=attempt, error=str(exc)
            )
            raise UpstreamUnavailable("No response from pollution API") from exc
        logger.info(
            "POLLUTION_FETCH_RESPONSE",
            **params,
            status=response.status_code,
            attempt=attempt,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    def _parse_pollution_response(self, response: httpx.Response, params: dict) -> list:
        status_code = response.status_code
        if status_code == 429:
            raise RateLimitError("Rate limit exceeded for pollution API")
        if status_code == 400:
            message = _error_message(response) or "Bad request"
            raise ValidationError(f"Pollution API validation error: {message}")
        if status_code >= 400:
            message = _error_message(response) or "Unknown error"
            logger.error("POLLUTION_BAD_STATUS", **params, status=status_code)
            raise UpstreamError(f"Pollution API error: {status_code} - {message}")

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("POLLUTION_BAD_PAYLOAD", **params, error=str(exc))
            raise UpstreamError("Invalid response format from pollution API") from exc

        if isinstance(payload, dict) and isinstance(payload.get("results"), list):
            results = payload["results"]
        elif isinstance(payload, list):
            results = payload
        else:
            logger.error("POLLUTION_BAD_PAYLOAD", **params)
            raise UpstreamError("Invalid response format from pollution API")

        logger.info("POLLUTION_FETCH_SUCCESS", **params, count=len(results))
        return results

    async def _acquire_token(self) -> None:
        """Obtain a fresh access token, preferring the refresh token."""
        if self.tokens.refresh_token:
            try:
                await self._refresh()
                return
            except (AuthError, UpstreamUnavailable) as exc:
                logger.warning("AUTH_REFRESH_FALLBACK_TO_LOGIN", error=str(exc))
                self.tokens.drop_refresh_token()
        try:
            await self._login()
        except (AuthError, UpstreamUnavailable):
            self.tokens.state = AuthState.unauthenticated
            raise

    async def _refresh(self) -> None:
        self.tokens.state = AuthState.refreshing
        logger.info("AUTH_REFRESH")
        payload = await self._post_auth(
            REFRESH_PATH,
            {"refreshToken": self.tokens.refresh_token},
            error_message="Token refresh failed",
        )
        self.tokens.store(payload["token"])
        logger.info("AUTH_REFRESH_SUCCESS")

    async def _login(self) -> None:
        self.tokens.state = AuthState.logging_in
        logger.info("AUTH_LOGIN", username=self._username)
        payload = await self._post_auth(
            LOGIN_PATH,
            {"username": self._username, "password": self._password},
            error_message="Authentication failed with external API",
        )
        self.tokens.store(payload["token"], payload.get("refreshToken"))
        logger.info(
            "AUTH_LOGIN_SUCCESS", has_refresh_token=bool(self.tokens.refresh_token)
        )

    async def _post_auth(self, path: str, body: dict, error_message: str) -> dict:
        """POST to an auth endpoint and return a payload that carries a token."""
        try:
            response = await self._http.post(path, json=body)
        except httpx.RequestError as exc:
            logger.error("AUTH_REQUEST_FAILED", path=path, error=str(exc))
            raise UpstreamUnavailable("No response from pollution API") from exc

        if response.status_code >= 400:
            logger.error("AUTH_BAD_STATUS", path=path, status=response.status_code)
            raise AuthError(error_message)
        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("AUTH_BAD_PAYLOAD", path=path)
            raise AuthError(error_message) from exc
        if not isinstance(payload, dict) or not payload.get("token"):
            logger.error("AUTH_BAD_PAYLOAD", path=path)
            raise AuthError(error_message)
        return payload


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        return payload.get("error") or payload.get("message")
    return None
