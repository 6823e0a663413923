from collections.abc import Callable
from typing import Any

import httpx

from ip_finder.errors import UpstreamError
from ip_finder.models.common import IPGeolocationData, Provider


class MockResponse:
    def __init__(self, status_code: int, payload: dict[str, Any] | None = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self) -> dict[str, Any]:
        return self._payload


class MockAsyncClient:
    """Minimal async context-manager mock for httpx.AsyncClient that records its calls."""

    def __init__(self, response: MockResponse) -> None:
        self._response = response
        self.calls: list[dict[str, Any]] = []

    async def __aenter__(self) -> "MockAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def get(self, url: str, params: dict[str, str] | None = None, headers: dict[str, str] | None = None) -> MockResponse:
        self.calls.append({"url": url, "params": params, "headers": headers})
        return self._response


class FailingAsyncClient:
    """Async client that raises a RequestError on enter to simulate network failure."""

    def __init__(self, url: str, *args: Any, **kwargs: Any) -> None:
        self._url = url

    async def __aenter__(self) -> "FailingAsyncClient":
        request = httpx.Request("GET", self._url)
        raise httpx.RequestError("Network failure", request=request)

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


def make_fake_async_client(client: MockAsyncClient) -> Callable[..., MockAsyncClient]:
    """Factory standing in for httpx.AsyncClient that always hands back `client`."""

    def _fake_client(*args: Any, **kwargs: Any) -> MockAsyncClient:
        return client

    return _fake_client


class FakeClock:
    """Manually advanced clock for TTL and rate limit window tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstreamClient:
    """Stand-in for UpstreamClient that counts fetches and returns canned results."""

    def __init__(self, error: UpstreamError | None = None) -> None:
        self._error = error
        self.calls: list[tuple[str | None, Provider]] = []

    async def fetch(self, ip: str | None, provider: Provider) -> IPGeolocationData:
        self.calls.append((ip, provider))
        if self._error is not None:
            raise self._error
        return make_record(ip or "203.0.113.7", provider)


def make_record(ip: str = "8.8.8.8", provider: Provider = Provider.ipapi_co) -> IPGeolocationData:
    return IPGeolocationData(
        ip=ip,
        provider=provider,
        city="Mountain View",
        region="California",
        country="US",
        country_name="United States",
        latitude=37.4056,
        longitude=-122.0775,
        org="Google LLC",
    )
