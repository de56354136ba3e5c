"""Nominatim-compatible geocoding client"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
import structlog

from zonemap.config.settings import settings
from zonemap.models import Vertex
from zonemap.utils.cache import cached_geocode, geocode_cache, InMemoryCache
from zonemap.utils.exceptions import GeocodingError, RateLimitError

logger = structlog.get_logger(__name__)

NOT_FOUND_ADDRESS = "Dirección no encontrada"
UNKNOWN_POPULATION = "Ubicación desconocida"


class GeocodingClient:
    """
    Client for a Nominatim-compatible geocoding service.

    Requests are throttled so that consecutive network calls are at least
    ``min_interval`` seconds apart; cached lookups skip the network and the
    throttle.
    """

    def __init__(
        self,
        base_url: str = settings.GEOCODER_BASE_URL,
        fallback_url: str = settings.GEOCODER_FALLBACK_URL,
        min_interval: float = settings.GEOCODE_MIN_INTERVAL,
        region_suffix: str = settings.GEOCODER_REGION_SUFFIX,
        bounds: Optional[Tuple[float, float, float, float]] = settings.GEOCODER_BOUNDS,
        language: str = settings.GEOCODER_LANGUAGE,
        http_client: Optional[httpx.Client] = None,
        cache: Optional[InMemoryCache] = geocode_cache,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.fallback_url = fallback_url.rstrip("/")
        self.min_interval = min_interval
        self.region_suffix = region_suffix
        self.bounds = bounds
        self.language = language
        self.cache = cache
        self.sleep = sleep
        self.clock = clock
        self.request_count = 0
        self._last_request: Optional[float] = None
        self._lock = threading.Lock()
        self.session = http_client or httpx.Client(
            timeout=settings.GEOCODER_TIMEOUT,
            headers={
                "User-Agent": settings.GEOCODER_USER_AGENT,
                "Accept": "application/json"
            }
        )
        logger.info("GeocodingClient initialized", base_url=self.base_url, min_interval=min_interval)

    def _wait_for_slot(self) -> None:
        """Block until the next request respects the service's rate limit"""
        with self._lock:
            if self._last_request is not None:
                wait = self._last_request + self.min_interval - self.clock()
                if wait > 0:
                    self.sleep(wait)
            self._last_request = self.clock()

    def _get(self, path: str, params: Dict[str, Any], base_url: Optional[str] = None) -> Any:
        self._wait_for_slot()
        self.request_count += 1

        try:
            response = self.session.get(f"{base_url or self.base_url}{path}", params=params)
        except httpx.HTTPError as e:
            logger.error("Geocoding request failed", path=path, error=str(e))
            raise GeocodingError(f"Geocoding request failed: {str(e)}")

        if response.status_code == 429:
            raise RateLimitError("Geocoding service rate limit exceeded")

        if response.status_code >= 400:
            logger.error("Geocoding service error", path=path, status=response.status_code)
            raise GeocodingError(f"Geocoding service returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise GeocodingError(f"Invalid geocoding response: {str(e)}")

    def _in_bounds(self, lat: float, lng: float) -> bool:
        if not self.bounds:
            return True
        south, west, north, east = self.bounds
        return south <= lat <= north and west <= lng <= east

    @staticmethod
    def clean_address(address: str) -> str:
        return " ".join(address.split())

    @cached_geocode(ttl_seconds=settings.GEOCODE_CACHE_TTL)
    def geocode(self, address: str) -> Optional[Vertex]:
        """
        Resolve a free-text address to coordinates

        Args:
            address: Address text; the configured region suffix is appended

        Returns:
            Vertex, or None when nothing (plausible) was found

        Raises:
            GeocodingError: Network or service failure
        """
        query = self.clean_address(address)
        if self.region_suffix:
            query = f"{query}, {self.region_suffix}"

        data = self._get("/search", {
            "format": "json",
            "q": query,
            "limit": 1,
            "accept-language": self.language,
        })

        if not data:
            logger.info("No coordinates found", address=query)
            return None

        try:
            lat = float(data[0]["lat"])
            lng = float(data[0]["lon"])
        except (KeyError, IndexError, TypeError, ValueError):
            logger.warning("Malformed geocoding result", address=query)
            return None

        if not self._in_bounds(lat, lng):
            logger.info("Geocoding result outside the expected area", address=query, lat=lat, lng=lng)
            return None

        return Vertex(lat=lat, lng=lng)

    def reverse(self, lat: float, lng: float) -> Dict[str, str]:
        """
        Resolve coordinates to a display address and population

        The configured service is asked first, then ``fallback_url`` when
        one is set. If every service fails the not-found placeholders are
        returned, so a map click always gets an answer.
        """
        for base_url in filter(None, (self.base_url, self.fallback_url)):
            try:
                return self._reverse_from(base_url, lat, lng)
            except GeocodingError as e:
                logger.warning("Reverse geocoding failed", base_url=base_url, lat=lat, lng=lng, error=str(e))

        return {"address": NOT_FOUND_ADDRESS, "population": UNKNOWN_POPULATION}

    @cached_geocode(ttl_seconds=settings.GEOCODE_CACHE_TTL)
    def _reverse_from(self, base_url: str, lat: float, lng: float) -> Dict[str, str]:
        data = self._get("/reverse", {
            "format": "json",
            "lat": lat,
            "lon": lng,
            "zoom": 18,
            "addressdetails": 1,
            "accept-language": self.language,
        }, base_url=base_url) or {}

        components = data.get("address")
        if not components:
            return {
                "address": data.get("display_name") or NOT_FOUND_ADDRESS,
                "population": UNKNOWN_POPULATION,
            }

        street = (components.get("road") or components.get("street")
                  or components.get("pedestrian") or components.get("footway"))
        number = components.get("house_number")
        suburb = components.get("suburb") or components.get("neighbourhood")
        city = components.get("city") or components.get("town") or components.get("village")

        parts = []
        if street:
            parts.append(f"{street}, {number}" if number else street)
        if suburb:
            parts.append(suburb)
        if city:
            parts.append(city)

        return {
            "address": ", ".join(parts) or data.get("display_name") or NOT_FOUND_ADDRESS,
            "population": city or UNKNOWN_POPULATION,
        }

    def get_usage_stats(self) -> Dict[str, Any]:
        return {
            "total_requests": self.request_count,
            "min_interval": self.min_interval,
            "base_url": self.base_url,
        }

    def close(self) -> None:
        self.session.close()
