from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class Provider(str, Enum):
    """Supported upstream IP geolocation providers."""

    ipapi_co = "ipapi.co"
    ipinfo_io = "ipinfo.io"


class IPGeolocationData(BaseModel):
    """Normalized geolocation record returned by an upstream provider.

    Snapshot of the provider output at fetch time. Instances are frozen so a
    cached record can be shared between requests without being mutated.
    Only `ip` is always present; providers may omit any other field.
    """

    model_config = ConfigDict(frozen=True)

    ip: str
    provider: Provider
    city: str | None = None
    region: str | None = None
    country: str | None = None
    country_name: str | None = None
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None
    org: str | None = None
    currency: str | None = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_lat_lon(cls, value: Any) -> float | None:
        """Allow latitude/longitude to be provided as strings, numbers, or null.

        Providers may return these fields as strings; this validator normalizes them
        into floats while gracefully handling missing or invalid values.
        """
        if value is None:
            return None
        try:
            # For general GPS and mapping, 5-6 decimal places (e.g., 34.052235)
            return round(float(value), 6)
        except (TypeError, ValueError):
            return None
