"""Spot collection and departure record for one trip."""
from __future__ import annotations

from datetime import date
from typing import Callable, Iterable, List, Optional
import uuid

from trip_planner.agents.day_grouping import derive_legs, group_and_order, same_slot
from trip_planner.errors import ReorderNotAllowed, SpotNotFound, ValidationError
from trip_planner.schemas import (
    UNDECIDED,
    DayGroup,
    Departure,
    Leg,
    Spot,
    SpotDraft,
    SpotPatch,
    Trip,
)

SAMPLE_SPOTS: List[dict] = [
    {"name": "空港到着・荷物受け取り", "category": "その他", "memo": "預け荷物あり"},
    {"name": "ホテルチェックイン", "category": "宿泊", "memo": "チェックイン 15:00〜"},
    {"name": "市内観光スポット巡り", "category": "観光", "memo": "主要スポットをまわる"},
    {"name": "ランチ（現地グルメ）", "category": "グルメ", "memo": "名物料理を食べる"},
    {"name": "博物館・美術館見学", "category": "観光", "memo": "午後からじっくり見学"},
    {"name": "お土産ショッピング", "category": "ショッピング", "memo": "地元のマーケットへ"},
    {"name": "ディナー（予約済み）", "category": "グルメ", "memo": "19:00〜 予約確認済み"},
    {"name": "ホテルチェックアウト・帰国", "category": "その他", "memo": "空港には2時間前を目安に"},
]


def _new_id() -> str:
    return str(uuid.uuid4())


class ItineraryModel:
    """
    Owns the ordered spot list and the departure record of a trip.

    Invalid mutations raise ``ValidationError`` and leave the model untouched.
    Spots are immutable records; edits replace them in place so the collection
    order (the manual order) survives.
    """

    def __init__(
        self,
        trip: Trip,
        spots: Optional[Iterable[SpotDraft]] = None,
        *,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.trip = trip
        self._id_factory = id_factory
        self._spots: List[Spot] = []
        self._issued_ids: set[str] = set()
        self._departure: Optional[Departure] = None
        self._editing_spot_id: Optional[str] = None
        for draft in spots or []:
            self.add_spot(draft)

    @classmethod
    def with_samples(cls, trip: Trip, **kwargs) -> "ItineraryModel":
        return cls(trip, [SpotDraft(**sample) for sample in SAMPLE_SPOTS], **kwargs)

    # ---- read side ----

    @property
    def spots(self) -> List[Spot]:
        return list(self._spots)

    @property
    def departure(self) -> Optional[Departure]:
        return self._departure

    def get_spot(self, spot_id: str) -> Spot:
        return self._spots[self._index_of(spot_id)]

    def groups(self) -> List[DayGroup]:
        return group_and_order(self._spots)

    def legs(self) -> List[Leg]:
        return derive_legs(self._departure, self.groups())

    # ---- spots ----

    def add_spot(self, draft: SpotDraft) -> Spot:
        name = draft.name.strip()
        if not name:
            raise ValidationError("スポット名を入力してください")
        self._check_visit_date(draft.visit_date)

        spot_id = self._fresh_id()
        spot = Spot(
            id=spot_id,
            name=name,
            category=draft.category,
            memo=draft.memo.strip(),
            visit_date=draft.visit_date,
            visit_time=draft.visit_time,
        )
        self._issued_ids.add(spot_id)
        self._spots.append(spot)
        return spot

    def update_spot(self, spot_id: str, patch: SpotPatch) -> Spot:
        idx = self._index_of(spot_id)
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValidationError("スポット名を入力してください")
        if "memo" in changes:
            changes["memo"] = changes["memo"].strip()
        if "visit_date" in changes:
            self._check_visit_date(changes["visit_date"])

        updated = self._spots[idx].model_copy(update=changes)
        self._spots[idx] = updated
        return updated

    def delete_spot(self, spot_id: str) -> None:
        self._spots = [s for s in self._spots if s.id != spot_id]
        if self._editing_spot_id == spot_id:
            self._editing_spot_id = None

    def move_spot(self, spot_id: str, target_id: str) -> None:
        """Drag ``spot_id`` onto ``target_id``.

        The dragged spot is re-inserted at the target's index, so it lands after
        the target when moving down and before it when moving up. Dates and
        times win over manual order, so only spots sharing a date and a time
        slot may be swapped.
        """
        if self.reorder_locked:
            raise ReorderNotAllowed("編集中は並び替えできません")
        src = self._index_of(spot_id)
        dst = self._index_of(target_id)
        if src == dst:
            return
        if not same_slot(self._spots[src], self._spots[dst]):
            raise ReorderNotAllowed("日時が異なるスポットは並び替えできません")
        moved = self._spots.pop(src)
        self._spots.insert(dst, moved)

    def can_move(self, spot_id: str, target_id: str) -> bool:
        if self.reorder_locked:
            return False
        return same_slot(self.get_spot(spot_id), self.get_spot(target_id))

    # ---- inline editing lock ----

    @property
    def editing_spot_id(self) -> Optional[str]:
        return self._editing_spot_id

    @property
    def reorder_locked(self) -> bool:
        return self._editing_spot_id is not None

    def begin_edit(self, spot_id: str) -> Spot:
        spot = self.get_spot(spot_id)
        self._editing_spot_id = spot_id
        return spot

    def finish_edit(self) -> None:
        self._editing_spot_id = None

    # ---- departure ----

    def set_departure(
        self,
        location: str,
        datetime: str = "",
        datetime_undecided: bool = False,
        *,
        location_undecided: bool = False,
    ) -> Departure:
        place = UNDECIDED if location_undecided else location.strip()
        if not place:
            raise ValidationError("出発地を入力してください")
        self._departure = Departure(
            location=place,
            datetime="" if datetime_undecided else datetime,
            datetime_undecided=datetime_undecided,
        )
        return self._departure

    def departure_form(self) -> dict:
        """Values to re-seed the departure form from the last saved record."""
        dep = self._departure
        if dep is None:
            return {"location": "", "datetime": "", "location_undecided": False, "datetime_undecided": False}
        return {
            "location": "" if dep.location_undecided else dep.location,
            "datetime": dep.datetime,
            "location_undecided": dep.location_undecided,
            "datetime_undecided": dep.datetime_undecided,
        }

    # ---- helpers ----

    def _index_of(self, spot_id: str) -> int:
        for idx, spot in enumerate(self._spots):
            if spot.id == spot_id:
                return idx
        raise SpotNotFound(spot_id)

    def _fresh_id(self) -> str:
        spot_id = self._id_factory()
        while spot_id in self._issued_ids:
            spot_id = self._id_factory()
        return spot_id

    def _check_visit_date(self, visit_date: str) -> None:
        if not visit_date:
            return
        try:
            day = date.fromisoformat(visit_date)
        except ValueError as exc:
            raise ValidationError("訪問日の形式が正しくありません") from exc
        if not self.trip.covers(day):
            raise ValidationError("訪問日は旅行期間内で指定してください")
