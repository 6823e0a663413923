from http import HTTPStatus
from typing import Any

from ip_finder.clients.base import ProviderProfile
from ip_finder.errors import InvalidIpError, ReservedIpError, UpstreamError
from ip_finder.models.common import IPGeolocationData, Provider


def check_payload(data: dict[str, Any]) -> None:
    """Normalize ipapi.co error payloads into domain exceptions.

    ipapi.co embeds error information in the JSON body, sometimes with HTTP 200.
    Examples:
        { "error": true, "reason": "Invalid IP Address", "ip": "..." }
        { "error": true, "reason": "Reserved IP Address", "ip": "127.0.0.1", "reserved": true }
        { "error": true, "reason": "RateLimited", "message": "..." }
        { "error": true, "reason": "Quota exceeded", "message": "..." }
    """
    if not data.get("error"):
        return

    reason = str(data.get("reason") or "")
    message = str(data.get("message") or reason or "Unknown error from ipapi.co")
    lower_reason = reason.lower()

    if "invalid" in lower_reason:
        raise InvalidIpError(message)

    if "reserved" in lower_reason or data.get("reserved") is True:
        raise ReservedIpError(message)

    if "ratelimited" in lower_reason or "quota" in lower_reason:
        raise UpstreamError(message, status_code=HTTPStatus.TOO_MANY_REQUESTS)

    raise UpstreamError(message)


def normalize(data: dict[str, Any]) -> IPGeolocationData:
    """Map ipapi.co's response into our normalized schema.

    Latitude/longitude are passed through as-is; the IPGeolocationData
    model is responsible for coercing them into floats via field validators.
    """
    return IPGeolocationData(
        ip=str(data.get("ip") or ""),
        provider=Provider.ipapi_co,
        city=data.get("city"),
        region=data.get("region"),
        country=data.get("country_code") or data.get("country"),
        country_name=data.get("country_name"),
        postal_code=data.get("postal"),
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
        timezone=data.get("timezone"),
        # ipapi.co exposes organisation/ISP information via the "org" field.
        org=data.get("org"),
        currency=data.get("currency"),
    )


IPAPI_CO = ProviderProfile(
    provider=Provider.ipapi_co,
    address_url="https://ipapi.co/{ip}/json/",
    own_address_url="https://ipapi.co/json/",
    credential_param="key",
    check_payload=check_payload,
    normalize=normalize,
)
