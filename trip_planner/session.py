"""In-memory trip sessions.

Nothing here survives a restart; a missing session simply means there is no
active trip and the client should go back to trip creation. Clients usually
just close the tab, so sessions idle for longer than the configured TTL are
forgotten, and the store never holds more than the configured maximum.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import logging
import secrets
import time

import pydantic

from trip_planner.agents.itinerary_model import ItineraryModel
from trip_planner.agents.map_view import MapViewBuilder
from trip_planner.config import configure_logger, get_max_sessions, get_session_ttl
from trip_planner.errors import ValidationError
from trip_planner.orchestrator import TravelLegOrchestrator
from trip_planner.schemas import LegView, Trip, TripCreate, TripState

logger = configure_logger(logging.getLogger(__name__))


@dataclass
class TripSession:
    session_id: str
    itinerary: ItineraryModel
    legs: TravelLegOrchestrator
    last_seen: float = 0.0

    @property
    def trip(self) -> Trip:
        return self.itinerary.trip

    def leg_views(self) -> List[LegView]:
        return self.legs.reconcile(self.itinerary.legs())

    def snapshot(self) -> TripState:
        return TripState(
            session_id=self.session_id,
            trip=self.trip,
            departure=self.itinerary.departure,
            groups=self.itinerary.groups(),
            legs=self.leg_views(),
            editing_spot_id=self.itinerary.editing_spot_id,
            reorder_locked=self.itinerary.reorder_locked,
        )


@dataclass
class SessionStore:
    orchestrator_factory: Callable[[], TravelLegOrchestrator] = TravelLegOrchestrator
    map_builder: Optional[MapViewBuilder] = None
    ttl: float = field(default_factory=get_session_ttl)
    max_sessions: int = field(default_factory=get_max_sessions)
    clock: Callable[[], float] = time.monotonic
    _sessions: Dict[str, TripSession] = field(default_factory=dict)

    def create(self, payload: TripCreate) -> TripSession:
        try:
            trip = Trip(
                destination=payload.destination.strip(),
                start_date=payload.start_date,
                end_date=payload.end_date,
                transport=payload.transport,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError("旅行先と期間を正しく入力してください") from exc

        now = self.clock()
        self._evict(now)
        while len(self._sessions) >= self.max_sessions:
            # get() re-inserts, so the first key is the least recently used
            oldest = next(iter(self._sessions))
            del self._sessions[oldest]
            logger.info("Evicted trip session %s (store full)", oldest)

        itinerary = ItineraryModel.with_samples(trip) if payload.with_samples else ItineraryModel(trip)
        session_id = secrets.token_urlsafe(16)
        session = TripSession(
            session_id=session_id, itinerary=itinerary, legs=self.orchestrator_factory(), last_seen=now
        )
        self._sessions[session_id] = session
        logger.info("Started trip session %s for %s (%s to %s)", session_id, trip.destination, trip.start_date, trip.end_date)
        return session

    def get(self, session_id: str) -> Optional[TripSession]:
        now = self.clock()
        self._evict(now)
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.last_seen = now
        self._sessions[session_id] = session
        return session

    def load_trip(self, session_id: str) -> Optional[Trip]:
        session = self.get(session_id)
        return session.trip if session else None

    def drop(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Closed trip session %s", session_id)

    def maps(self) -> MapViewBuilder:
        if self.map_builder is None:
            self.map_builder = MapViewBuilder()
        return self.map_builder

    def _evict(self, now: float) -> None:
        idle = [sid for sid, session in self._sessions.items() if now - session.last_seen > self.ttl]
        for sid in idle:
            del self._sessions[sid]
            logger.info("Expired idle trip session %s", sid)
