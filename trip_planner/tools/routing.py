from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Protocol
import logging

import httpx

from trip_planner.config import (
    configure_logger,
    get_google_maps_api_key,
    get_http_timeout,
    get_route_backend,
    get_service_urls,
)
from trip_planner.errors import (
    CommunicationError,
    ConfigurationError,
    PlaceNotFound,
    RouteNotFound,
    UpstreamError,
    ValidationError,
)
from trip_planner.schemas import Coordinates, TravelTime

logger = configure_logger(logging.getLogger(__name__))


@dataclass(frozen=True)
class Place:
    name: str
    coords: Optional[Coordinates] = None


class RouteLookup(Protocol):
    """Duration and distance for one leg, whichever backend answers it."""

    requires_coordinates: bool
    supported_modes: FrozenSet[str]
    default_mode: str

    async def lookup(self, origin: Place, destination: Place, mode: str) -> TravelTime:
        ...


def format_duration(seconds: float) -> str:
    total_minutes = int(round(seconds / 60.0))
    hours, minutes = divmod(total_minutes, 60)
    if hours:
        return f"{hours}時間{minutes}分"
    return f"{minutes}分"


def format_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{int(round(meters))} m"


def _check_mode(lookup: RouteLookup, mode: str) -> None:
    if mode not in lookup.supported_modes:
        raise ValidationError(f"この移動手段は利用できません ({mode})")


async def _get_json(url: str, params: Dict[str, Any], timeout: float) -> Any:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url, params=params)
            return response.json()
    except httpx.HTTPError as exc:
        logger.warning("Route request to %s failed: %s", url, exc)
        raise CommunicationError() from exc
    except ValueError as exc:
        logger.warning("Route response from %s was not JSON", url)
        raise CommunicationError() from exc


class OsrmRouteLookup:
    """
    Coordinate-pair backend (OSRM ``/route/v1`` API). Returns raw seconds and
    meters which are formatted here.
    """

    requires_coordinates = True
    supported_modes = frozenset({"driving", "walking", "cycling"})
    default_mode = "driving"

    def __init__(self, *, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or get_service_urls()["osrm"]).rstrip("/")
        self.timeout = get_http_timeout() if timeout is None else timeout

    async def lookup(self, origin: Place, destination: Place, mode: str) -> TravelTime:
        _check_mode(self, mode)
        if origin.coords is None or destination.coords is None:
            raise ValueError("OSRM lookups need resolved coordinates")

        # OSRM wants lng,lat order
        path = f"{origin.coords.lng},{origin.coords.lat};{destination.coords.lng},{destination.coords.lat}"
        url = f"{self.base_url}/route/v1/{mode}/{path}"
        logger.info("Requesting %s route %s -> %s", mode, origin.name, destination.name)
        data = await _get_json(url, {"overview": "false"}, self.timeout)

        if not isinstance(data, dict):
            raise CommunicationError()
        routes = data.get("routes") or []
        if data.get("code") != "Ok" or not routes:
            logger.warning("No %s route %s -> %s (code=%s)", mode, origin.name, destination.name, data.get("code"))
            raise RouteNotFound()
        try:
            duration = float(routes[0]["duration"])
            distance = float(routes[0]["distance"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CommunicationError() from exc
        return TravelTime(duration=format_duration(duration), distance=format_distance(distance))


class GoogleDirectionsRouteLookup:
    """
    Named-place backend (Google Directions API). The service geocodes by itself
    and already returns human-formatted text, which is passed through verbatim.
    """

    requires_coordinates = False
    supported_modes = frozenset({"transit", "driving", "walking"})
    default_mode = "driving"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        language: str = "ja",
    ):
        self._api_key = api_key
        self.endpoint = endpoint or get_service_urls()["google_directions"]
        self.timeout = get_http_timeout() if timeout is None else timeout
        self.language = language

    @property
    def api_key(self) -> str:
        # read lazily so a key added to the environment later is picked up
        return self._api_key or get_google_maps_api_key()

    async def lookup(self, origin: Place, destination: Place, mode: str) -> TravelTime:
        api_key = self.api_key
        if not api_key:
            raise ConfigurationError("GOOGLE_MAPS_API_KEY が設定されていません")
        _check_mode(self, mode)

        params = {
            "origin": origin.name,
            "destination": destination.name,
            "mode": mode,
            "language": self.language,
            "key": api_key,
        }
        logger.info("Requesting %s directions %s -> %s", mode, origin.name, destination.name)
        data = await _get_json(self.endpoint, params, self.timeout)
        if not isinstance(data, dict):
            raise CommunicationError()

        status = str(data.get("status", ""))
        if status == "NOT_FOUND":
            raise PlaceNotFound(f"{origin.name} / {destination.name}")
        if status == "ZERO_RESULTS":
            raise RouteNotFound()
        if status != "OK":
            logger.warning("Directions API returned status %s", status)
            raise UpstreamError(status)

        routes = data.get("routes") or []
        if not routes or not routes[0].get("legs"):
            raise RouteNotFound()
        try:
            leg = routes[0]["legs"][0]
            return TravelTime(duration=leg["duration"]["text"], distance=leg["distance"]["text"])
        except (KeyError, TypeError) as exc:
            raise CommunicationError() from exc


def build_route_lookup(backend: Optional[str] = None) -> RouteLookup:
    name = (backend or get_route_backend()).strip().lower()
    if name == "osrm":
        return OsrmRouteLookup()
    if name == "google":
        return GoogleDirectionsRouteLookup()
    raise ConfigurationError(f"未対応のルート検索バックエンドです ({name})")
