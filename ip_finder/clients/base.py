from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ip_finder.models.common import IPGeolocationData, Provider


@dataclass(frozen=True)
class ProviderProfile:
    """Everything that differs between upstream geolocation providers.

    Concrete profiles (ipapi.co, ipinfo.io) supply the endpoint templates, the
    name of the optional credential query parameter, a hook that turns errors
    embedded in a successful response body into domain exceptions, and a
    normalizer mapping the provider payload into `IPGeolocationData`.
    """

    provider: Provider
    address_url: str
    own_address_url: str
    credential_param: str
    check_payload: Callable[[dict[str, Any]], None]
    normalize: Callable[[dict[str, Any]], IPGeolocationData]

    def url_for(self, ip: str | None) -> str:
        if ip:
            return self.address_url.format(ip=ip)
        return self.own_address_url
