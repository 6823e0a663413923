from dataclasses import dataclass

from pydantic import ValidationError

from ip_finder.cache import ResultCache, make_lookup_key
from ip_finder.clients.upstream import UpstreamClient
from ip_finder.config import Settings
from ip_finder.errors import InvalidRequestError, ThrottleError
from ip_finder.logger import logger
from ip_finder.models.common import IPGeolocationData, Provider
from ip_finder.models.request_models import IPLookupRequest
from ip_finder.rate_limiter import RateLimiter, RateLimitResult


@dataclass(frozen=True)
class LookupResult:
    record: IPGeolocationData
    rate_limit: RateLimitResult
    cache_hit: bool


class LookupService:
    """Serves lookups through the rate limiter, the result cache and the upstream client.

    Per request: admit the caller, answer from the cache when possible, and
    otherwise fetch from the selected provider and cache the record. Upstream
    failures propagate unchanged and leave the cache untouched. Two concurrent
    misses for the same key may both reach the provider; the last write wins.
    """

    def __init__(
        self,
        cache: ResultCache[IPGeolocationData],
        rate_limiter: RateLimiter,
        client: UpstreamClient,
    ) -> None:
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.client = client

    async def lookup(self, ip: str | None, provider: Provider, identity: str) -> LookupResult:
        """Serve a lookup for `ip` (None for the caller's own address) from `provider`.

        The caller is charged against its quota before the address is validated,
        so malformed requests count towards the limit too.
        """
        rate_limit = self.rate_limiter.check(identity)
        if not rate_limit.allowed:
            logger.warning(f"Rate limit exceeded identity={identity} ip={ip} limit={rate_limit.limit}")
            raise ThrottleError(rate_limit)

        try:
            request = IPLookupRequest(ip=ip, provider=provider)
        except ValidationError as exc:
            raise InvalidRequestError("The supplied IP address is not a valid IPv4 or IPv6 address.") from exc

        key = make_lookup_key(request.ip)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache hit key={key} provider={request.provider.value}")
            return LookupResult(record=cached, rate_limit=rate_limit, cache_hit=True)

        logger.info(f"Cache miss key={key} provider={request.provider.value}")
        record = await self.client.fetch(request.ip, request.provider)
        self.cache.put(key, record)
        return LookupResult(record=record, rate_limit=rate_limit, cache_hit=False)

    def clear_cache(self) -> int:
        removed = self.cache.clear()
        logger.info(f"Cache cleared entries={removed}")
        return removed

    def purge_expired(self) -> tuple[int, int]:
        """Sweep expired cache entries and idle rate limit windows."""
        entries = self.cache.purge_expired()
        windows = self.rate_limiter.purge_idle()
        if entries or windows:
            logger.debug(
                f"Purged expired cache_entries={entries} rate_limit_windows={windows} cached_remaining={len(self.cache)}"
            )
        return entries, windows


def build_lookup_service(settings: Settings) -> LookupService:
    """Wire a LookupService from configuration."""
    return LookupService(
        cache=ResultCache(ttl_seconds=settings.cache_duration),
        rate_limiter=RateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        client=UpstreamClient(
            credentials={
                Provider.ipapi_co: settings.ipapi_key,
                Provider.ipinfo_io: settings.ipinfo_token,
            },
            timeout_seconds=settings.upstream_timeout_seconds,
            user_agent=settings.user_agent,
        ),
    )
