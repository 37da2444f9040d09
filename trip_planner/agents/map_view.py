"""Markers and viewport for the trip map.

Display geocoding is deliberately forgiving: a place that cannot be resolved
is simply left off the map. It runs on its own geocoder instance so its cache
never mixes with the one used for travel legs.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from trip_planner.config import configure_logger
from trip_planner.errors import TripPlannerError
from trip_planner.schemas import (
    Coordinates,
    Departure,
    MapView,
    Marker,
    Spot,
    Viewport,
)
from trip_planner.tools.geocoding import NominatimGeocoder

logger = configure_logger(logging.getLogger(__name__))

CATEGORY_COLORS = {
    "観光": "#38bdf8",
    "グルメ": "#fb923c",
    "ショッピング": "#f472b6",
    "宿泊": "#c084fc",
    "その他": "#9ca3af",
}
DEFAULT_COLOR = "#9ca3af"
DEPARTURE_COLOR = "#4f46e5"

DESTINATION_ZOOM = 11
SINGLE_POINT_ZOOM = 14
FIT_PADDING = 40


def marker_specs(departure: Optional[Departure], spots: Sequence[Spot]) -> List[dict]:
    items: List[dict] = []
    if departure is not None and not departure.location_undecided:
        items.append({
            "name": departure.location,
            "label": f"出発: {departure.location}",
            "color": DEPARTURE_COLOR,
            "radius": 10,
        })
    for spot in spots:
        items.append({
            "name": spot.name,
            "label": spot.name,
            "color": CATEGORY_COLORS.get(spot.category, DEFAULT_COLOR),
            "radius": 8,
        })
    return items


def fit_viewport(points: Sequence[Coordinates]) -> Optional[Viewport]:
    if not points:
        return None
    if len(points) == 1:
        return Viewport(center=points[0], zoom=SINGLE_POINT_ZOOM)
    lats = [p.lat for p in points]
    lngs = [p.lng for p in points]
    return Viewport(
        bounds=[
            Coordinates(lat=min(lats), lng=min(lngs)),
            Coordinates(lat=max(lats), lng=max(lngs)),
        ],
        padding=FIT_PADDING,
    )


class MapViewBuilder:
    def __init__(self, geocoder: Optional[NominatimGeocoder] = None):
        self.geocoder = geocoder or NominatimGeocoder()

    async def locate(self, name: str) -> Optional[Coordinates]:
        try:
            return await self.geocoder.geocode(name)
        except TripPlannerError as exc:
            logger.warning("Could not place %r on the map: %s", name, exc.message)
            return None

    async def build(self, destination: str, departure: Optional[Departure], spots: Sequence[Spot]) -> MapView:
        specs = marker_specs(departure, spots)
        center, *coords = await asyncio.gather(
            self.locate(destination),
            *(self.locate(spec["name"]) for spec in specs),
        )

        markers = [
            Marker(position=position, **spec)
            for spec, position in zip(specs, coords)
            if position is not None
        ]
        logger.info("Placed %d/%d markers for %s", len(markers), len(specs), destination)
        return MapView(
            destination_center=Viewport(center=center, zoom=DESTINATION_ZOOM) if center else None,
            markers=markers,
            viewport=fit_viewport([m.position for m in markers]),
        )
