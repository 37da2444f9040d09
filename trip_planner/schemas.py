from datetime import date
from typing import List, Literal, NamedTuple, Optional
from pydantic import BaseModel, Field, ConfigDict, computed_field, model_validator

UNDECIDED = "未定"            # departure place explicitly deferred by the traveller
DEPARTURE_ID = "departure"   # synthetic item id used in leg keys

Category = Literal["観光", "グルメ", "ショッピング", "宿泊", "その他"]
CATEGORIES: tuple = ("観光", "グルメ", "ショッピング", "宿泊", "その他")
DEFAULT_CATEGORY = "観光"

Transport = Literal["", "飛行機", "新幹線", "電車", "バス", "車", "フェリー", "その他"]
TravelMode = Literal["driving", "walking", "cycling", "transit"]
LegStatus = Literal["idle", "loading", "ready", "failed"]

_DATE_PATTERN = r"^(\d{4}-\d{2}-\d{2})?$"
_TIME_PATTERN = r"^(([01]\d|2[0-3]):[0-5]\d)?$"


# ------- Itinerary records -------
class Trip(BaseModel):
    model_config = ConfigDict(frozen=True)

    destination: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    transport: Transport = ""

    @model_validator(mode="after")
    def _check_range(self) -> "Trip":
        if not self.destination.strip():
            raise ValueError("destination must not be blank")
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class Departure(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: str
    datetime: str = ""
    datetime_undecided: bool = False

    @property
    def location_undecided(self) -> bool:
        return self.location == UNDECIDED


class Spot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: Category = DEFAULT_CATEGORY
    memo: str = ""
    visit_date: str = Field("", pattern=_DATE_PATTERN)   # "" = undecided bucket
    visit_time: str = Field("", pattern=_TIME_PATTERN)   # "" sorts after timed spots


class SpotDraft(BaseModel):
    name: str
    category: Category = DEFAULT_CATEGORY
    memo: str = ""
    visit_date: str = Field("", pattern=_DATE_PATTERN)
    visit_time: str = Field("", pattern=_TIME_PATTERN)


class SpotPatch(BaseModel):
    name: Optional[str] = None
    category: Optional[Category] = None
    memo: Optional[str] = None
    visit_date: Optional[str] = Field(None, pattern=_DATE_PATTERN)
    visit_time: Optional[str] = Field(None, pattern=_TIME_PATTERN)


class DayGroup(BaseModel):
    date: str
    spots: List[Spot] = Field(default_factory=list)

    @property
    def is_undecided(self) -> bool:
        return self.date == ""


class LegKey(NamedTuple):
    origin_id: str
    destination_id: str


class Leg(BaseModel):
    """Directed pair of adjacent items in the flattened itinerary."""

    origin_id: str
    origin_name: str
    destination_id: str
    destination_name: str

    @property
    def key(self) -> LegKey:
        return LegKey(self.origin_id, self.destination_id)


# ------- Travel legs -------
class Coordinates(BaseModel):
    lat: float
    lng: float


class TravelTime(BaseModel):
    duration: str
    distance: str


class TravelLegInfo(BaseModel):
    origin_id: str
    destination_id: str
    mode: TravelMode = "driving"
    status: LegStatus = "idle"
    duration: Optional[str] = None
    distance: Optional[str] = None
    error: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def loading(self) -> bool:
        return self.status == "loading"


class LegView(BaseModel):
    leg: Leg
    info: TravelLegInfo
    can_fetch: bool


# ------- Map -------
class Marker(BaseModel):
    name: str
    label: str
    color: str
    radius: int
    position: Coordinates


class Viewport(BaseModel):
    center: Optional[Coordinates] = None
    zoom: Optional[int] = None
    bounds: Optional[List[Coordinates]] = None   # [south-west, north-east]
    padding: Optional[int] = None


class MapView(BaseModel):
    destination_center: Optional[Viewport] = None
    markers: List[Marker] = Field(default_factory=list)
    viewport: Optional[Viewport] = None


# ------- Request models -------
class TripCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    destination: str
    start_date: date
    end_date: date
    transport: Transport = ""
    with_samples: bool = False


class DepartureUpdate(BaseModel):
    location: str = ""
    datetime: str = ""
    location_undecided: bool = False
    datetime_undecided: bool = False


class MoveSpotRequest(BaseModel):
    target_id: str


class ModeUpdate(BaseModel):
    mode: TravelMode


# ------- Response models -------
class TripState(BaseModel):
    session_id: str
    trip: Trip
    departure: Optional[Departure] = None
    groups: List[DayGroup] = Field(default_factory=list)
    legs: List[LegView] = Field(default_factory=list)
    editing_spot_id: Optional[str] = None
    reorder_locked: bool = False
