"""
Address geocoding against Nominatim (OpenStreetMap).

Every request waits on a shared per-process RateLimiter, and transient
failures (transport errors, timeouts, HTTP 429/5xx) are retried through
`retry_async` with a RetryPolicy. Exhausted retries, empty results and
rejected input all yield `None`; callers record a warning and move on.
"""

from typing import Optional

import httpx

from core.config import settings
from core.exceptions import GeocodingError, NetworkError, RateLimitError, RetryableError
from core.retry import RateLimiter, RetryPolicy, retry_async
from schemas.listing import Coordinates
import logging

logger = logging.getLogger(__name__)

REGION = "Quebec"
COUNTRY = "Canada"
COUNTRY_CODES = "ca"


class NominatimGeocoder:
    """
    Free-text address geocoder.

    Attributes:
        base_url: Nominatim search endpoint
        rate_limiter: Shared limiter; one request per interval per process
        retry_policy: Attempts and randomized backoff range
        client: Optional injected httpx.AsyncClient (a short-lived client is
            opened per request otherwise)
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        default_city: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.GEOCODER_MAX_ATTEMPTS,
            backoff_range=(settings.GEOCODER_BACKOFF_MIN_SECONDS, settings.GEOCODER_BACKOFF_MAX_SECONDS),
        )
        self.client = client
        self.base_url = base_url or settings.GEOCODER_BASE_URL
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.default_city = default_city or settings.GEOCODER_DEFAULT_CITY
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.calls = 0

    def build_query(self, address: str, city: Optional[str] = None, postal_code: Optional[str] = None) -> str:
        parts = [address.strip(), city or self.default_city, postal_code, REGION, COUNTRY]
        return ", ".join(p for p in parts if p)

    async def geocode(
        self,
        address: Optional[str],
        city: Optional[str] = None,
        postal_code: Optional[str] = None,
    ) -> Optional[Coordinates]:
        """
        Geocode an address.

        Returns:
            Coordinates, or None when nothing was found, the input was
            rejected, or all attempts failed.
        """
        if not address or not address.strip():
            return None

        query = self.build_query(address, city, postal_code)

        try:
            return await retry_async(
                lambda: self._search(query),
                self.retry_policy,
                retry_on=(RetryableError,),
                description=f"Geocoding '{query}'",
            )
        except RetryableError as e:
            logger.warning(f"Geocoding gave up for '{query}': {e.message}")
            return None
        except GeocodingError as e:
            logger.warning(f"Geocoding rejected '{query}': {e.message}")
            return None

    async def _search(self, query: str) -> Optional[Coordinates]:
        """One rate-limited request. Raises RetryableError for transient failures."""
        await self.rate_limiter.acquire()
        self.calls += 1

        params = {"q": query, "format": "json", "limit": 1, "countrycodes": COUNTRY_CODES}
        headers = {"User-Agent": self.user_agent}

        try:
            if self.client is not None:
                response = await self.client.get(self.base_url, params=params, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.base_url, params=params, headers=headers)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise NetworkError(
                f"Geocoder request failed: {type(e).__name__}",
                context={"query": query},
                original_exception=e,
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Geocoder rate limit hit",
                context={"query": query, "status_code": 429},
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 500:
            raise NetworkError(
                f"Geocoder unavailable (HTTP {response.status_code})",
                context={"query": query, "status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise GeocodingError(
                f"Geocoder rejected request (HTTP {response.status_code})",
                context={"query": query, "status_code": response.status_code},
            )

        try:
            results = response.json()
        except ValueError as e:
            raise GeocodingError("Geocoder returned invalid JSON", context={"query": query}, original_exception=e)

        if not results:
            logger.info(f"No geocoding result for '{query}'")
            return None

        first = results[0]
        try:
            return Coordinates(
                latitude=float(first["lat"]),
                longitude=float(first["lon"]),
                display_name=first.get("display_name"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodingError("Geocoder result missing coordinates", context={"query": query}, original_exception=e)
