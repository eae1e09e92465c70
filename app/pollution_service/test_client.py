import httpx
import pytest

from app.errors import (
    AuthError,
    RateLimitError,
    UpstreamError,
    UpstreamUnavailable,
    ValidationError,
)
from app.pollution_service.client import AuthState, PollutionApiClient, TokenState

BASE_URL = "https://pollution.test"


class FakePollutionApi:
    """Scripted upstream: each /pollution call pops the next (status, body)."""

    def __init__(
        self,
        pollution_responses,
        login_response=(200, {"token": "access-1", "refreshToken": "refresh-1"}),
        refresh_response=(200, {"token": "access-2"}),
    ):
        self.pollution_responses = list(pollution_responses)
        self.login_response = login_response
        self.refresh_response = refresh_response
        self.requests = []

    def paths(self):
        return [request.url.path for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/auth/login":
            status, body = self.login_response
            return httpx.Response(status, json=body)
        if request.url.path == "/auth/refresh":
            status, body = self.refresh_response
            return httpx.Response(status, json=body)
        if request.url.path == "/pollution":
            status, body = self.pollution_responses.pop(0)
            return httpx.Response(status, json=body)
        raise AssertionError(f"Unexpected URL: {request.url}")


def make_client(api, tokens=None):
    http_client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(api))
    return PollutionApiClient(http_client, "testuser", "testpass", tokens=tokens)


async def test_logs_in_then_fetches_results():
    api = FakePollutionApi([(200, {"results": [{"name": "Warsaw", "pollution": 50}]})])
    client = make_client(api)

    results = await client.fetch_pollution_data("PL", 1, 5)

    assert results == [{"name": "Warsaw", "pollution": 50}]
    assert api.paths() == ["/auth/login", "/pollution"]
    data_request = api.requests[1]
    assert data_request.headers["Authorization"] == "Bearer access-1"
    assert dict(data_request.url.params) == {"country": "PL", "page": "1", "limit": "5"}
    assert client.tokens.state == AuthState.authenticated
    assert client.tokens.refresh_token == "refresh-1"


async def test_accepts_bare_array_payload():
    api = FakePollutionApi([(200, [{"name": "Berlin", "pollution": 10}])])
    client = make_client(api)
    assert await client.fetch_pollution_data("DE") == [{"name": "Berlin", "pollution": 10}]


async def test_reuses_cached_token():
    api = FakePollutionApi([(200, {"results": []}), (200, {"results": []})])
    client = make_client(api)
    await client.fetch_pollution_data("PL")
    await client.fetch_pollution_data("DE")
    assert api.paths() == ["/auth/login", "/pollution", "/pollution"]


async def test_401_then_200_refreshes_and_retries_once():
    api = FakePollutionApi([(401, {}), (200, {"results": [{"name": "Paris"}]})])
    client = make_client(api, TokenState(access_token="stale", refresh_token="refresh-0"))

    results = await client.fetch_pollution_data("FR")

    assert results == [{"name": "Paris"}]
    assert api.paths() == ["/pollution", "/auth/refresh", "/pollution"]
    assert api.paths().count("/pollution") == 2
    assert api.requests[-1].headers["Authorization"] == "Bearer access-2"
    assert client.tokens.access_token == "access-2"


async def test_401_without_refresh_token_logs_in_again():
    api = FakePollutionApi([(401, {}), (200, {"results": []})])
    client = make_client(api, TokenState(access_token="stale"))

    assert await client.fetch_pollution_data("ES") == []
    assert api.paths() == ["/pollution", "/auth/login", "/pollution"]


async def test_failed_refresh_drops_refresh_token_and_logs_in():
    api = FakePollutionApi(
        [(401, {}), (200, {"results": []})],
        login_response=(200, {"token": "access-login"}),
        refresh_response=(401, {"error": "expired"}),
    )
    client = make_client(api, TokenState(access_token="stale", refresh_token="refresh-0"))

    await client.fetch_pollution_data("PL")

    assert api.paths() == ["/pollution", "/auth/refresh", "/auth/login", "/pollution"]
    assert client.tokens.refresh_token is None
    assert client.tokens.access_token == "access-login"


async def test_401_twice_raises_auth_error_without_looping():
    api = FakePollutionApi([(401, {}), (401, {})])
    client = make_client(api)

    with pytest.raises(AuthError):
        await client.fetch_pollution_data("PL")

    assert api.paths().count("/pollution") == 2
    assert client.tokens.access_token is None


async def test_login_failure_is_fatal():
    api = FakePollutionApi([], login_response=(401, {"error": "bad credentials"}))
    client = make_client(api)

    with pytest.raises(AuthError):
        await client.fetch_pollution_data("PL")
    assert api.paths() == ["/auth/login"]
    assert client.tokens.state == AuthState.unauthenticated


async def test_login_response_without_token_is_auth_error():
    api = FakePollutionApi([], login_response=(200, {"message": "ok"}))
    with pytest.raises(AuthError):
        await make_client(api).fetch_pollution_data("PL")


async def test_429_raises_rate_limit_error_without_retry():
    api = FakePollutionApi([(429, {"error": "slow down"})])
    client = make_client(api)
    with pytest.raises(RateLimitError):
        await client.fetch_pollution_data("PL")
    assert api.paths().count("/pollution") == 1


async def test_400_propagates_upstream_message():
    api = FakePollutionApi([(400, {"error": "Invalid country"})])
    with pytest.raises(ValidationError) as exc_info:
        await make_client(api).fetch_pollution_data("XX")
    assert "Invalid country" in str(exc_info.value)


async def test_500_raises_upstream_error():
    api = FakePollutionApi([(500, {"error": "boom"})])
    with pytest.raises(UpstreamError) as exc_info:
        await make_client(api).fetch_pollution_data("PL")
    assert "500" in str(exc_info.value)


async def test_unexpected_payload_raises_upstream_error():
    api = FakePollutionApi([(200, {"data": "nope"})])
    with pytest.raises(UpstreamError):
        await make_client(api).fetch_pollution_data("PL")


async def test_network_failure_raises_upstream_unavailable():
    def failing_handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    http_client = httpx.AsyncClient(
        base_url=BASE_URL, transport=httpx.MockTransport(failing_handler)
    )
    client = PollutionApiClient(
        http_client, "testuser", "testpass", tokens=TokenState(access_token="token")
    )
    with pytest.raises(UpstreamUnavailable):
        await client.fetch_pollution_data("PL")
