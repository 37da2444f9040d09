"""Regression tests for day bucketing and leg derivation."""

from trip_planner.agents.day_grouping import derive_legs, group_and_order, ordered_spots
from trip_planner.schemas import DEPARTURE_ID, UNDECIDED, Departure, Spot


def _spot(spot_id: str, date: str = "", time: str = "", name: str | None = None) -> Spot:
    return Spot(id=spot_id, name=name or spot_id, visit_date=date, visit_time=time)


def test_buckets_sort_by_date_with_undecided_last():
    spots = [
        _spot("A", "2025-06-02"),
        _spot("B", "2025-06-01"),
        _spot("C", ""),
    ]

    groups = group_and_order(spots)

    assert [g.date for g in groups] == ["2025-06-01", "2025-06-02", ""]
    assert [[s.id for s in g.spots] for g in groups] == [["B"], ["A"], ["C"]]
    assert groups[-1].is_undecided


def test_untimed_spots_follow_timed_ones_and_keep_insertion_order():
    spots = [
        _spot("first", "2025-06-01", "09:00"),
        _spot("untimed-1", "2025-06-01", ""),
        _spot("afternoon", "2025-06-01", "14:00"),
        _spot("untimed-2", "2025-06-01", ""),
    ]

    (group,) = group_and_order(spots)

    assert [s.visit_time for s in group.spots] == ["09:00", "14:00", "", ""]
    assert [s.id for s in group.spots] == ["first", "afternoon", "untimed-1", "untimed-2"]


def test_grouping_is_deterministic_and_leaves_input_alone():
    spots = [
        _spot("x", "2025-06-03", "10:00"),
        _spot("y", ""),
        _spot("z", "2025-06-01", "10:00"),
        _spot("w", "2025-06-03", "10:00"),
    ]
    before = list(spots)

    first = group_and_order(spots)
    second = group_and_order(spots)

    assert [g.model_dump() for g in first] == [g.model_dump() for g in second]
    assert spots == before
    # equal date and time: insertion order decides
    assert [s.id for s in first[1].spots] == ["x", "w"]


def test_undecided_bucket_is_last_even_with_many_dates():
    spots = [_spot("u1"), _spot("d1", "2030-12-31"), _spot("u2"), _spot("d2", "2025-01-01")]

    groups = group_and_order(spots)

    assert groups[-1].date == ""
    assert [s.id for s in groups[-1].spots] == ["u1", "u2"]


def test_empty_input_has_no_groups_or_legs():
    assert group_and_order([]) == []
    assert derive_legs(None, []) == []


def test_legs_start_at_departure_and_follow_bucket_order():
    spots = [_spot("a", "2025-06-02"), _spot("b", "2025-06-01"), _spot("c")]
    groups = group_and_order(spots)
    departure = Departure(location="Tokyo Station")

    legs = derive_legs(departure, groups)

    assert [s.id for s in ordered_spots(groups)] == ["b", "a", "c"]
    assert [(leg.origin_id, leg.destination_id) for leg in legs] == [
        (DEPARTURE_ID, "b"),
        ("b", "a"),
        ("a", "c"),
    ]
    assert legs[0].origin_name == "Tokyo Station"


def test_undecided_departure_is_left_out_of_the_sequence():
    groups = group_and_order([_spot("a"), _spot("b")])

    legs = derive_legs(Departure(location=UNDECIDED), groups)

    assert [(leg.origin_id, leg.destination_id) for leg in legs] == [("a", "b")]
