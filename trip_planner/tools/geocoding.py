import logging
import time
from typing import Callable, Dict, Optional, Tuple

import httpx

from trip_planner.config import (
    configure_logger,
    get_geocode_ttl,
    get_http_timeout,
    get_service_urls,
    get_user_agent,
)
from trip_planner.errors import CommunicationError, PlaceNotFound
from trip_planner.schemas import Coordinates

logger = configure_logger(logging.getLogger(__name__))


class NominatimGeocoder:
    """
    Resolve free-text place names to coordinates through a Nominatim-compatible
    search endpoint. The first candidate wins.

    Successful lookups are cached by exact query string for ``ttl`` seconds.
    Misses and failures are never cached so a retry reaches the service again.
    Expired entries are dropped whenever a new one is stored.
    """

    SEARCH_PATH = "/search"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        ttl: Optional[float] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_url = (base_url or get_service_urls()["nominatim"]).rstrip("/")
        self.ttl = get_geocode_ttl() if ttl is None else ttl
        self.timeout = get_http_timeout() if timeout is None else timeout
        self._clock = clock
        self._cache: Dict[str, Tuple[float, Coordinates]] = {}

    async def geocode(self, query: str) -> Coordinates:
        cached = self._cache.get(query)
        if cached and cached[0] > self._clock():
            logger.debug("Geocode cache hit for %r", query)
            return cached[1]

        params = {"q": query, "format": "json", "limit": 1}
        headers = {"Accept-Language": "ja,en", "User-Agent": get_user_agent()}
        logger.info("Geocoding %r", query)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.base_url + self.SEARCH_PATH, params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Geocoding request for %r failed: %s", query, exc)
            raise CommunicationError() from exc
        except ValueError as exc:
            logger.warning("Geocoding response for %r was not JSON", query)
            raise CommunicationError() from exc

        coords = _first_candidate(data, query)
        now = self._clock()
        self._prune(now)
        self._cache[query] = (now + self.ttl, coords)
        return coords

    def _prune(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._cache.items() if expires_at <= now]
        for key in expired:
            del self._cache[key]
        if expired:
            logger.debug("Dropped %d expired geocode entries", len(expired))

    def clear_cache(self) -> None:
        self._cache.clear()


def _first_candidate(data, query: str) -> Coordinates:
    if not isinstance(data, list):
        raise CommunicationError()
    if not data:
        logger.warning("No geocoding results for %r", query)
        raise PlaceNotFound(query)
    first = data[0]
    try:
        return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise CommunicationError() from exc
