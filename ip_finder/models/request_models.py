from ipaddress import ip_address

from pydantic import BaseModel, Field, field_validator

from ip_finder.models.common import Provider


class IPLookupRequest(BaseModel):
    """A single lookup request as seen by the orchestrator.

    If `ip` is provided, the service will look up that explicit IP address.
    If `ip` is omitted or blank, the service will look up the caller's own address.
    """

    ip: str | None = Field(
        default=None,
        description="IPv4 or IPv6 address to look up. If omitted, the caller's IP is used.",
        examples=["8.8.8.8", "2001:4860:4860::8888"],
    )
    provider: Provider = Field(
        default=Provider.ipapi_co,
        description="Upstream provider serving the lookup.",
        examples=["ipapi.co", "ipinfo.io"],
    )

    @field_validator("ip", mode="before")
    @classmethod
    def _validate_ip(cls, value: str | None) -> str | None:
        """Validate that ip is either empty/None or a valid IP address (IPv4 or IPv6).

        - None or blank string -> treated as None (own address lookup, no error).
        - Non-blank -> must be a valid IP literal, otherwise a validation error is raised.
        """
        if value is None:
            return None

        value_str = str(value).strip()
        if not value_str:
            return None

        try:
            ip_address(value_str)
        except ValueError as exc:
            raise ValueError("ip must be a valid IPv4 or IPv6 address") from exc

        return value_str
