from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

import httpx

from ip_finder.clients.base import ProviderProfile
from ip_finder.clients.ipapi_co import IPAPI_CO
from ip_finder.clients.ipinfo_io import IPINFO_IO
from ip_finder.errors import IpNotFoundError, UpstreamError
from ip_finder.logger import logger
from ip_finder.models.common import IPGeolocationData, Provider


class UpstreamClient:
    """Client for the upstream IP geolocation providers.

    A single request path serves every provider; the `ProviderProfile` chosen
    per call supplies the endpoint, the credential parameter name and the
    payload mapping. Each request talks to exactly one provider end-to-end.
    """

    PROFILES: dict[Provider, ProviderProfile] = {
        Provider.ipapi_co: IPAPI_CO,
        Provider.ipinfo_io: IPINFO_IO,
    }

    def __init__(
        self,
        credentials: Mapping[Provider, str | None] | None = None,
        timeout_seconds: float = 5.0,
        user_agent: str = "IP-Finder-App/1.0",
    ) -> None:
        self._credentials = dict(credentials or {})
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent

    async def fetch(self, ip: str | None, provider: Provider) -> IPGeolocationData:
        """Look up `ip` (or the caller's own address when None) with `provider`."""
        profile = self.PROFILES[provider]
        url = profile.url_for(ip)
        data = await self._request(url, self._build_params(profile))
        profile.check_payload(data)
        return profile.normalize(data)

    def _build_params(self, profile: ProviderProfile) -> dict[str, str]:
        """Attach the credential only when one is configured; never send it blank."""
        credential = (self._credentials.get(profile.provider) or "").strip()
        if not credential:
            return {}
        return {profile.credential_param: credential}

    async def _request(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        """Perform the HTTP request and return the decoded JSON body."""
        logger.debug(f"Calling IP provider url={url} authenticated={bool(params)}")
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.get(url, params=params, headers={"User-Agent": self._user_agent})
        except httpx.RequestError as exc:
            raise UpstreamError(str(exc) or repr(exc)) from exc

        self._handle_http_errors(response)
        return self._parse_json(response)

    def _handle_http_errors(self, response: httpx.Response) -> None:
        """Map HTTP error statuses from the provider to domain errors, keeping the status."""
        status_code = response.status_code
        if status_code < HTTPStatus.BAD_REQUEST:
            return

        message = self._extract_error_message(response)
        if status_code == HTTPStatus.NOT_FOUND:
            raise IpNotFoundError(message)
        raise UpstreamError(message, status_code=status_code)

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str:
        """Best-effort human readable message from a provider error response."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error = body.get("error")
            candidates = [
                body.get("message"),
                error.get("message") if isinstance(error, dict) else None,
                body.get("reason"),
                error if isinstance(error, str) else None,
            ]
            for candidate in candidates:
                if candidate:
                    return str(candidate)

        return response.text or f"IP provider returned HTTP {response.status_code}"

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(f"Failed to decode IP provider response as JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise UpstreamError("IP provider returned an unexpected JSON payload.")
        return data
