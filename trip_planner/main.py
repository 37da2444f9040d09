from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trip_planner.config import get_allowed_origins
from trip_planner.errors import ConfigurationError, TripPlannerError, ValidationError
from trip_planner.orchestrator import TravelLegOrchestrator
from trip_planner.schemas import (
    DepartureUpdate,
    Leg,
    LegView,
    MapView,
    ModeUpdate,
    MoveSpotRequest,
    Spot,
    SpotDraft,
    SpotPatch,
    TripCreate,
    TripState,
)
from trip_planner.session import SessionStore, TripSession

app = FastAPI(title="Trip Planner API")

# Browser front-ends are served from elsewhere in development; operators can
# narrow this with TRIP_PLANNER_ALLOWED_ORIGINS.
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = SessionStore()
_query_orchestrator: Optional[TravelLegOrchestrator] = None


def get_query_orchestrator() -> TravelLegOrchestrator:
    """Orchestrator behind the stateless travel-time query, built on first use."""
    global _query_orchestrator
    if _query_orchestrator is None:
        _query_orchestrator = TravelLegOrchestrator()
    return _query_orchestrator


def _http_error(exc: TripPlannerError) -> HTTPException:
    return HTTPException(status_code=exc.http_status, detail=exc.message)


def _session(session_id: str) -> TripSession:
    session = store.get(session_id)
    if session is None:
        # no active trip: the client goes back to trip creation
        raise HTTPException(status_code=404, detail={"error": "旅行プランが見つかりません", "redirect": "/"})
    return session


def _leg(session: TripSession, origin_id: str, destination_id: str) -> Leg:
    for leg in session.itinerary.legs():
        if leg.origin_id == origin_id and leg.destination_id == destination_id:
            return leg
    raise HTTPException(status_code=404, detail="区間が見つかりません")


# ---------- stateless travel-time query ----------
@app.get("/api/travel-time")
async def travel_time(
    origin: Optional[str] = Query(None),
    destination: Optional[str] = Query(None),
    mode: Optional[str] = Query(None),
):
    if not origin or not destination:
        return JSONResponse({"error": "origin と destination は必須です"}, status_code=400)
    try:
        result = await get_query_orchestrator().travel_time(origin, destination, mode)
    except ConfigurationError as exc:
        return JSONResponse({"error": exc.message}, status_code=500)
    except ValidationError as exc:
        return JSONResponse({"error": exc.message}, status_code=400)
    except TripPlannerError as exc:
        return JSONResponse({"error": exc.message}, status_code=404)
    return result.model_dump()


# ---------- trips ----------
@app.post("/api/trips", response_model=TripState, status_code=201)
async def create_trip(payload: TripCreate = Body(...)) -> TripState:
    try:
        session = store.create(payload)
    except TripPlannerError as exc:
        raise _http_error(exc) from exc
    return session.snapshot()


@app.get("/api/trips/{session_id}", response_model=TripState)
async def get_trip(session_id: str) -> TripState:
    return _session(session_id).snapshot()


@app.delete("/api/trips/{session_id}", status_code=204)
async def end_trip(session_id: str) -> None:
    store.drop(session_id)


# ---------- departure ----------
@app.put("/api/trips/{session_id}/departure", response_model=TripState)
async def save_departure(session_id: str, payload: DepartureUpdate = Body(...)) -> TripState:
    session = _session(session_id)
    try:
        session.itinerary.set_departure(
            payload.location,
            payload.datetime,
            payload.datetime_undecided,
            location_undecided=payload.location_undecided,
        )
    except TripPlannerError as exc:
        raise _http_error(exc) from exc
    return session.snapshot()


@app.get("/api/trips/{session_id}/departure/form")
async def departure_form(session_id: str) -> Dict[str, Any]:
    return _session(session_id).itinerary.departure_form()


# ---------- spots ----------
@app.post("/api/trips/{session_id}/spots", response_model=Spot, status_code=201)
async def add_spot(session_id: str, draft: SpotDraft = Body(...)) -> Spot:
    session = _session(session_id)
    try:
        return session.itinerary.add_spot(draft)
    except TripPlannerError as exc:
        raise _http_error(exc) from exc


@app.patch("/api/trips/{session_id}/spots/{spot_id}", response_model=Spot)
async def update_spot(session_id: str, spot_id: str, patch: SpotPatch = Body(...)) -> Spot:
    session = _session(session_id)
    try:
        spot = session.itinerary.update_spot(spot_id, patch)
    except TripPlannerError as exc:
        raise _http_error(exc) from exc
    if session.itinerary.editing_spot_id == spot_id:
        session.itinerary.finish_edit()
    return spot


@app.delete("/api/trips/{session_id}/spots/{spot_id}", status_code=204)
async def delete_spot(session_id: str, spot_id: str) -> None:
    _session(session_id).itinerary.delete_spot(spot_id)


@app.post("/api/trips/{session_id}/spots/{spot_id}/move", response_model=TripState)
async def move_spot(session_id: str, spot_id: str, payload: MoveSpotRequest = Body(...)) -> TripState:
    session = _session(session_id)
    try:
        session.itinerary.move_spot(spot_id, payload.target_id)
    except TripPlannerError as exc:
        raise _http_error(exc) from exc
    return session.snapshot()


@app.post("/api/trips/{session_id}/spots/{spot_id}/edit", response_model=Spot)
async def begin_edit(session_id: str, spot_id: str) -> Spot:
    session = _session(session_id)
    try:
        return session.itinerary.begin_edit(spot_id)
    except TripPlannerError as exc:
        raise _http_error(exc) from exc


@app.delete("/api/trips/{session_id}/edit", status_code=204)
async def finish_edit(session_id: str) -> None:
    _session(session_id).itinerary.finish_edit()


# ---------- legs ----------
@app.put("/api/trips/{session_id}/legs/{origin_id}/{destination_id}/mode", response_model=LegView)
async def set_leg_mode(session_id: str, origin_id: str, destination_id: str, payload: ModeUpdate = Body(...)) -> LegView:
    session = _session(session_id)
    leg = _leg(session, origin_id, destination_id)
    try:
        session.legs.set_mode(leg, payload.mode)
    except TripPlannerError as exc:
        raise _http_error(exc) from exc
    return session.legs.leg_view(leg)


@app.post("/api/trips/{session_id}/legs/{origin_id}/{destination_id}/fetch", response_model=LegView)
async def fetch_leg(session_id: str, origin_id: str, destination_id: str) -> LegView:
    session = _session(session_id)
    leg = _leg(session, origin_id, destination_id)
    return await session.legs.fetch_view(leg)


# ---------- map ----------
@app.get("/api/trips/{session_id}/map", response_model=MapView)
async def trip_map(session_id: str) -> MapView:
    session = _session(session_id)
    return await store.maps().build(session.trip.destination, session.itinerary.departure, session.itinerary.spots)
