from http import HTTPStatus

import httpx
import pytest

from ip_finder.clients.upstream import UpstreamClient
from ip_finder.errors import InvalidIpError, IpNotFoundError, ReservedIpError, UpstreamError
from ip_finder.models.common import IPGeolocationData, Provider
from tests.common import FailingAsyncClient, MockAsyncClient, MockResponse, make_fake_async_client


def _install(monkeypatch: pytest.MonkeyPatch, response: MockResponse) -> MockAsyncClient:
    mock_client = MockAsyncClient(response)
    monkeypatch.setattr(httpx, "AsyncClient", make_fake_async_client(mock_client))
    return mock_client


@pytest.mark.asyncio
async def test_fetch_ip_success(monkeypatch: pytest.MonkeyPatch) -> None:
    """Happy path: successful lookup with string lat/lon coerced to float."""
    payload = {
        "ip": "8.8.8.8",
        "city": "Mountain View",
        "region": "California",
        "country": "US",
        "country_name": "United States",
        "country_code": "US",
        "postal": "94043",
        "latitude": "37.386",
        "longitude": "-122.0838",
        "timezone": "America/Los_Angeles",
        "currency": "USD",
        "org": "Google LLC",
    }
    mock_client = _install(monkeypatch, MockResponse(status_code=HTTPStatus.OK, payload=payload))

    result = await UpstreamClient().fetch("8.8.8.8", Provider.ipapi_co)

    assert isinstance(result, IPGeolocationData)
    assert result.ip == "8.8.8.8"
    assert result.provider == Provider.ipapi_co
    assert result.country == "US"
    assert result.country_name == "United States"
    assert result.region == "California"
    assert result.city == "Mountain View"
    assert result.postal_code == "94043"
    # Use pytest.approx to allow for minor floating-point representation differences.
    assert result.latitude == pytest.approx(37.386)
    assert result.longitude == pytest.approx(-122.0838)
    assert result.timezone == "America/Los_Angeles"
    assert result.currency == "USD"
    assert result.org == "Google LLC"
    assert mock_client.calls[0]["url"] == "https://ipapi.co/8.8.8.8/json/"
    assert mock_client.calls[0]["headers"] == {"User-Agent": "IP-Finder-App/1.0"}


@pytest.mark.asyncio
async def test_fetch_own_ip_uses_json_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    """Own address lookup uses the /json/ endpoint and tolerates missing fields."""
    payload = {"ip": "198.51.100.42", "country_name": "Germany", "latitude": 52.52, "longitude": 13.405}
    mock_client = _install(monkeypatch, MockResponse(status_code=HTTPStatus.OK, payload=payload))

    result = await UpstreamClient().fetch(None, Provider.ipapi_co)

    assert mock_client.calls[0]["url"] == "https://ipapi.co/json/"
    assert result.ip == "198.51.100.42"
    assert result.country_name == "Germany"
    assert result.city is None
    assert result.latitude == pytest.approx(52.52)


@pytest.mark.asyncio
async def test_credential_is_omitted_when_not_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_client = _install(monkeypatch, MockResponse(status_code=HTTPStatus.OK, payload={"ip": "8.8.8.8"}))

    await UpstreamClient(credentials={Provider.ipapi_co: None}).fetch("8.8.8.8", Provider.ipapi_co)
    await UpstreamClient(credentials={Provider.ipapi_co: "   "}).fetch("8.8.8.8", Provider.ipapi_co)

    assert [call["params"] for call in mock_client.calls] == [{}, {}]


@pytest.mark.asyncio
async def test_credential_is_sent_as_key_param(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_client = _install(monkeypatch, MockResponse(status_code=HTTPStatus.OK, payload={"ip": "8.8.8.8"}))

    client = UpstreamClient(credentials={Provider.ipapi_co: "secret-key", Provider.ipinfo_io: "other"})
    await client.fetch("8.8.8.8", Provider.ipapi_co)

    assert mock_client.calls[0]["params"] == {"key": "secret-key"}


@pytest.mark.asyncio
async def test_fetch_invalid_ip_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """ipapi.co indicates an invalid IP via an error flag in the JSON payload."""
    payload = {"error": True, "reason": "Invalid IP Address"}
    _install(monkeypatch, MockResponse(status_code=HTTPStatus.OK, payload=payload))

    with pytest.raises(InvalidIpError) as exc_info:
        await UpstreamClient().fetch("999.999.999.999", Provider.ipapi_co)

    assert exc_info.value.status_code == HTTPStatus.BAD_REQUEST
    assert exc_info.value.message == "Invalid IP Address"


@pytest.mark.asyncio
async def test_fetch_reserved_ip_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """ipapi.co indicates a reserved/private IP via an error flag in the JSON payload."""
    payload = {"error": True, "reason": "Reserved IP Address", "reserved": True}
    _install(monkeypatch, MockResponse(status_code=HTTPStatus.OK, payload=payload))

    with pytest.raises(ReservedIpError):
        await UpstreamClient().fetch("192.168.0.1", Provider.ipapi_co)


@pytest.mark.asyncio
async def test_fetch_json_rate_limited_error_maps_to_429(monkeypatch: pytest.MonkeyPatch) -> None:
    """JSON body with RateLimited reason keeps the provider message and a 429 status."""
    payload = {"error": True, "reason": "RateLimited", "message": "Too many requests"}
    _install(monkeypatch, MockResponse(status_code=HTTPStatus.OK, payload=payload))

    with pytest.raises(UpstreamError) as exc_info:
        await UpstreamClient().fetch("8.8.8.8", Provider.ipapi_co)

    assert exc_info.value.status_code == HTTPStatus.TOO_MANY_REQUESTS
    assert exc_info.value.message == "Too many requests"


@pytest.mark.asyncio
async def test_fetch_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    """404 from ipapi.co is translated to IpNotFoundError."""
    _install(monkeypatch, MockResponse(status_code=HTTPStatus.NOT_FOUND, payload={}, text="Not Found"))

    with pytest.raises(IpNotFoundError) as exc_info:
        await UpstreamClient().fetch("203.0.113.10", Provider.ipapi_co)

    assert exc_info.value.status_code == HTTPStatus.NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code",
    [
        HTTPStatus.BAD_REQUEST,
        HTTPStatus.FORBIDDEN,
        HTTPStatus.TOO_MANY_REQUESTS,
        HTTPStatus.INTERNAL_SERVER_ERROR,
        HTTPStatus.SERVICE_UNAVAILABLE,
    ],
)
async def test_fetch_http_error_statuses_are_propagated(
    monkeypatch: pytest.MonkeyPatch,
    status_code: HTTPStatus,
) -> None:
    """HTTP error responses keep the provider status code."""
    _install(monkeypatch, MockResponse(status_code=status_code, payload={}, text="Some error"))

    with pytest.raises(UpstreamError) as exc_info:
        await UpstreamClient().fetch("8.8.8.8", Provider.ipapi_co)

    assert exc_info.value.status_code == status_code
    assert exc_info.value.message == "Some error"


@pytest.mark.asyncio
async def test_fetch_http_error_prefers_provider_message(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {"error": True, "reason": "Forbidden", "message": "Invalid API key"}
    _install(monkeypatch, MockResponse(status_code=HTTPStatus.FORBIDDEN, payload=payload, text="raw"))

    with pytest.raises(UpstreamError) as exc_info:
        await UpstreamClient().fetch("8.8.8.8", Provider.ipapi_co)

    assert exc_info.value.message == "Invalid API key"


@pytest.mark.asyncio
async def test_fetch_network_failure_raises_upstream_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """Network failures become a generic 500 carrying the transport message."""
    monkeypatch.setattr(
        httpx, "AsyncClient", lambda *args, **kwargs: FailingAsyncClient("https://ipapi.co", *args, **kwargs)
    )

    with pytest.raises(UpstreamError) as exc_info:
        await UpstreamClient().fetch("8.8.8.8", Provider.ipapi_co)

    assert exc_info.value.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert exc_info.value.message == "Network failure"


@pytest.mark.asyncio
async def test_fetch_invalid_json_raises_upstream_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """Non-JSON responses are mapped to UpstreamError via JSON decode failure."""

    class BadJsonResponse(MockResponse):
        def json(self) -> dict:
            raise ValueError("not json")

    _install(monkeypatch, BadJsonResponse(status_code=HTTPStatus.OK))

    with pytest.raises(UpstreamError) as exc_info:
        await UpstreamClient().fetch("8.8.8.8", Provider.ipapi_co)

    assert exc_info.value.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
