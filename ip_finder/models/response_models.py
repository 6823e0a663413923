from pydantic import BaseModel

from ip_finder.models.common import Provider


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str


class MessageResponse(BaseModel):
    """Plain informational message."""

    message: str


class IPLookupResponse(BaseModel):
    """Response model for IP geolocation lookup.

    Null fields are dropped from the JSON body, so presence depends on what
    the provider returned.
    """

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


class ErrorResponse(BaseModel):
    """Structured error body returned on failures."""

    error: str
    message: str | None = None
