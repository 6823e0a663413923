from typing import Any

from ip_finder.clients.base import ProviderProfile
from ip_finder.errors import ReservedIpError, UpstreamError
from ip_finder.models.common import IPGeolocationData, Provider


def check_payload(data: dict[str, Any]) -> None:
    """Normalize ipinfo.io error payloads into domain exceptions.

    Private and reserved ranges come back as HTTP 200 with a `bogon` flag:
        { "ip": "127.0.0.1", "bogon": true }
    """
    if data.get("bogon"):
        raise ReservedIpError(f"{data.get('ip') or 'The requested address'} is a bogon (reserved) IP address.")

    error = data.get("error")
    if error:
        if isinstance(error, dict):
            message = error.get("message") or error.get("title")
        else:
            message = error
        raise UpstreamError(str(message or "Unknown error from ipinfo.io"))


def _split_loc(loc: Any) -> tuple[str | None, str | None]:
    """ipinfo.io reports coordinates as a single "lat,lon" string."""
    if not isinstance(loc, str) or "," not in loc:
        return None, None
    latitude, longitude = loc.split(",", 1)
    return latitude.strip(), longitude.strip()


def normalize(data: dict[str, Any]) -> IPGeolocationData:
    """Map ipinfo.io's response into our normalized schema."""
    latitude, longitude = _split_loc(data.get("loc"))

    return IPGeolocationData(
        ip=str(data.get("ip") or ""),
        provider=Provider.ipinfo_io,
        city=data.get("city"),
        region=data.get("region"),
        country=data.get("country"),
        postal_code=data.get("postal"),
        latitude=latitude,
        longitude=longitude,
        timezone=data.get("timezone"),
        org=data.get("org"),
    )


IPINFO_IO = ProviderProfile(
    provider=Provider.ipinfo_io,
    address_url="https://ipinfo.io/{ip}/json",
    own_address_url="https://ipinfo.io/json",
    credential_param="token",
    check_payload=check_payload,
    normalize=normalize,
)
