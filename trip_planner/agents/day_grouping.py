"""Day bucketing and chronological leg derivation for an itinerary."""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from trip_planner.schemas import (
    DEPARTURE_ID,
    UNDECIDED,
    DayGroup,
    Departure,
    Leg,
    Spot,
)


def group_and_order(spots: Sequence[Spot]) -> List[DayGroup]:
    """Partition spots into day buckets and order them.

    Buckets are keyed by ``visit_date`` ("" is the undecided bucket) and sorted
    by date with the undecided bucket always last. Inside a bucket spots are
    ordered by ``visit_time``; untimed spots come after every timed one. Both
    sorts are stable, so ties keep insertion order and the same input always
    yields the same output. The input sequence is never mutated.
    """
    buckets: Dict[str, List[Spot]] = {}
    for spot in spots:
        buckets.setdefault(spot.visit_date, []).append(spot)

    ordered_dates = sorted(buckets, key=lambda d: (d == "", d))
    return [
        DayGroup(date=d, spots=sorted(buckets[d], key=lambda s: (s.visit_time == "", s.visit_time)))
        for d in ordered_dates
    ]


def ordered_spots(groups: Sequence[DayGroup]) -> List[Spot]:
    return [spot for group in groups for spot in group.spots]


def derive_legs(departure: Optional[Departure], groups: Sequence[DayGroup]) -> List[Leg]:
    """Adjacent (origin, destination) pairs of the flattened itinerary.

    The departure leads the sequence unless it is missing or its place is the
    undecided sentinel. A pair only becomes a leg when both ends carry a
    resolvable name.
    """
    items = []
    if departure is not None and not departure.location_undecided and departure.location.strip():
        items.append((DEPARTURE_ID, departure.location))
    items.extend((spot.id, spot.name) for spot in ordered_spots(groups))

    legs: List[Leg] = []
    for (origin_id, origin_name), (dest_id, dest_name) in zip(items, items[1:]):
        if not _resolvable(origin_name) or not _resolvable(dest_name):
            continue
        legs.append(
            Leg(
                origin_id=origin_id,
                origin_name=origin_name,
                destination_id=dest_id,
                destination_name=dest_name,
            )
        )
    return legs


def same_slot(a: Spot, b: Spot) -> bool:
    """True when grouping cannot tell the two spots apart, so manual order decides."""
    return a.visit_date == b.visit_date and a.visit_time == b.visit_time


def _resolvable(name: str) -> bool:
    return bool(name and name.strip()) and name != UNDECIDED
