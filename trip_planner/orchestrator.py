# trip_planner/orchestrator.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
import asyncio
import logging

from trip_planner.config import configure_logger
from trip_planner.errors import CommunicationError, TripPlannerError, ValidationError
from trip_planner.schemas import UNDECIDED, Leg, LegKey, LegView, TravelLegInfo, TravelTime
from trip_planner.tools.geocoding import NominatimGeocoder
from trip_planner.tools.routing import Place, RouteLookup, build_route_lookup

logger = configure_logger(logging.getLogger(__name__))


@dataclass
class _LegEntry:
    """Mutable per-leg record. ``generation`` changes whenever an in-flight
    response must no longer be applied."""

    key: LegKey
    origin_name: str
    destination_name: str
    info: TravelLegInfo
    generation: int = 0


@dataclass
class TravelLegOrchestrator:
    """
    Travel time and distance for itinerary legs, fetched only on request.

    Each leg (origin id, destination id) carries its own state machine:
    idle -> loading -> ready | failed. Changing the mode of a leg, or renaming
    one of its ends, puts it back to idle; any response that was in flight at
    that moment is discarded when it arrives. Legs are independent, so any
    number of them may be loading at once.
    """

    route_lookup: RouteLookup = field(default_factory=build_route_lookup)
    geocoder: NominatimGeocoder = field(default_factory=NominatimGeocoder)
    _entries: Dict[LegKey, _LegEntry] = field(default_factory=dict, init=False, repr=False)

    # ---------- stateless query ----------
    async def travel_time(self, origin: str, destination: str, mode: Optional[str] = None) -> TravelTime:
        """Geocode (when the backend needs it) and route one leg.

        Raises ``PlaceNotFound``, ``RouteNotFound``, ``UpstreamError``,
        ``ConfigurationError`` or ``CommunicationError``.
        """
        mode = mode or self.route_lookup.default_mode
        if mode not in self.route_lookup.supported_modes:
            raise ValidationError(f"この移動手段は利用できません ({mode})")
        try:
            if self.route_lookup.requires_coordinates:
                # both lookups must finish before the route call goes out
                origin_coords, destination_coords = await asyncio.gather(
                    self.geocoder.geocode(origin),
                    self.geocoder.geocode(destination),
                )
                start = Place(origin, origin_coords)
                end = Place(destination, destination_coords)
            else:
                start, end = Place(origin), Place(destination)
            return await self.route_lookup.lookup(start, end, mode)
        except TripPlannerError:
            raise
        except Exception as exc:
            logger.warning("Unexpected failure routing %s -> %s", origin, destination, exc_info=True)
            raise CommunicationError() from exc

    # ---------- per-leg state ----------
    def leg_info(self, leg: Leg) -> TravelLegInfo:
        return self._entry_for(leg).info

    def leg_view(self, leg: Leg) -> LegView:
        return LegView(leg=leg, info=self.leg_info(leg), can_fetch=self.can_fetch(leg))

    def can_fetch(self, leg: Leg) -> bool:
        entry = self._entry_for(leg)
        if entry.info.status == "loading":
            return False
        if leg.origin_name == UNDECIDED or not leg.origin_name.strip():
            return False
        return bool(leg.destination_name.strip())

    def set_mode(self, leg: Leg, mode: str) -> TravelLegInfo:
        if mode not in self.route_lookup.supported_modes:
            raise ValidationError(f"この移動手段は利用できません ({mode})")
        entry = self._entry_for(leg)
        entry.generation += 1
        entry.info = TravelLegInfo(origin_id=leg.origin_id, destination_id=leg.destination_id, mode=mode)
        return entry.info

    async def fetch(self, leg: Leg) -> TravelLegInfo:
        """Run one user-triggered lookup for ``leg`` and return its new state.

        A fetch that is not allowed (already loading, undecided origin, empty
        destination) leaves the state unchanged.
        """
        if not self.can_fetch(leg):
            return self.leg_info(leg)

        entry = self._entry_for(leg)
        entry.generation += 1
        issued_generation = entry.generation
        mode = entry.info.mode
        entry.info = TravelLegInfo(
            origin_id=leg.origin_id, destination_id=leg.destination_id, mode=mode, status="loading"
        )

        try:
            result = await self.travel_time(leg.origin_name, leg.destination_name, mode)
            outcome = TravelLegInfo(
                origin_id=leg.origin_id,
                destination_id=leg.destination_id,
                mode=mode,
                status="ready",
                duration=result.duration,
                distance=result.distance,
            )
            logger.info("Leg %s -> %s (%s): %s, %s", leg.origin_name, leg.destination_name, mode, result.duration, result.distance)
        except TripPlannerError as exc:
            outcome = TravelLegInfo(
                origin_id=leg.origin_id,
                destination_id=leg.destination_id,
                mode=mode,
                status="failed",
                error=exc.message,
            )
            logger.warning("Leg %s -> %s (%s) failed: %s", leg.origin_name, leg.destination_name, mode, exc.message)

        current = self._entries.get(leg.key)
        if current is not entry or entry.generation != issued_generation:
            logger.warning("Discarding stale response for leg %s -> %s (%s)", leg.origin_name, leg.destination_name, mode)
            return current.info if current is not None else outcome
        entry.info = outcome
        return outcome

    async def fetch_view(self, leg: Leg) -> LegView:
        """``fetch`` and report the leg as it stands once the lookup is over.

        A leg that disappeared or was renamed in the meantime is not tracked
        again under its old endpoints.
        """
        info = await self.fetch(leg)
        entry = self._entries.get(leg.key)
        if entry is None or (entry.origin_name, entry.destination_name) != (leg.origin_name, leg.destination_name):
            return LegView(leg=leg, info=info, can_fetch=False)
        return self.leg_view(leg)

    # ---------- reconciliation ----------
    def reconcile(self, legs: Iterable[Leg]) -> List[LegView]:
        """Align stored state with the current leg sequence.

        Entries for legs that disappeared are dropped, entries whose endpoint
        names changed go back to idle with their mode kept.
        """
        legs = list(legs)
        live = {leg.key for leg in legs}
        for key in [k for k in self._entries if k not in live]:
            del self._entries[key]
        return [self.leg_view(leg) for leg in legs]

    def _entry_for(self, leg: Leg) -> _LegEntry:
        entry = self._entries.get(leg.key)
        if entry is None:
            entry = _LegEntry(
                key=leg.key,
                origin_name=leg.origin_name,
                destination_name=leg.destination_name,
                info=TravelLegInfo(
                    origin_id=leg.origin_id,
                    destination_id=leg.destination_id,
                    mode=self.route_lookup.default_mode,
                ),
            )
            self._entries[leg.key] = entry
        elif (entry.origin_name, entry.destination_name) != (leg.origin_name, leg.destination_name):
            entry.origin_name = leg.origin_name
            entry.destination_name = leg.destination_name
            entry.generation += 1
            entry.info = TravelLegInfo(
                origin_id=leg.origin_id, destination_id=leg.destination_id, mode=entry.info.mode
            )
        return entry
