import uuid
from datetime import date, datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

PriceTier = Literal["budget", "optimal", "premium"]
CabType = Literal["hatchback", "sedan", "suv", "tempo"]


def _coerce_iso_date(value):
    """Accept plain dates as well as ISO timestamps ('2025-11-01T00:00:00Z')."""
    if isinstance(value, str) and "T" in value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed.date()
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date() if value.tzinfo else value.date()
    return value


def _reject_past(value: date | None) -> date | None:
    if value is not None and value < datetime.now(timezone.utc).date():
        raise ValueError("start_date must not be in the past")
    return value


# ─── Requests ───


class StartDateValidated(BaseModel):
    @field_validator("start_date", mode="before", check_fields=False)
    @classmethod
    def parse_start_date(cls, value):
        return _coerce_iso_date(value)

    @field_validator("start_date", check_fields=False)
    @classmethod
    def check_start_date(cls, value):
        return _reject_past(value)


class GeneratePackageRequest(StartDateValidated):
    destination_ids: list[uuid.UUID] = Field(min_length=1)
    people: int = Field(gt=0)
    price_bucket: PriceTier
    activities: list[str] | None = None
    include_common_attractions: bool = False
    start_date: date | None = None


class DayConfiguration(BaseModel):
    day_index: int = Field(ge=0)
    hotel_id: str | None = None
    activity_ids: list[uuid.UUID] | None = None


class UpdatePackageRequest(StartDateValidated):
    start_date: date | None = None
    cab_id: uuid.UUID | None = None
    day_configurations: list[DayConfiguration] = Field(default_factory=list)
    is_public: bool | None = None


class BookPackageRequest(BaseModel):
    cab_id: uuid.UUID | None = None
    day_configurations: list[DayConfiguration] = Field(default_factory=list)


class ClonePackageRequest(StartDateValidated):
    start_date: date


# ─── Package value ───


class HotelOption(BaseModel):
    hotel_id: str
    name: str | None = None
    price: float | None = None
    currency: str | None = None
    board_type: str | None = None
    distance_km: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    check_in_date: date | None = None
    check_out_date: date | None = None
    room_quantity: int = 1


class ActivityItem(BaseModel):
    poi_id: uuid.UUID
    name: str
    pricing_type: str | None = None
    base_price: float | None = None
    cost: float = 0.0
    metadata: dict = Field(default_factory=dict)


class RestaurantSuggestion(BaseModel):
    id: uuid.UUID
    name: str
    price_range: str | None = None
    average_rating: float | None = None
    total_ratings: int | None = None
    veg_non_veg: str | None = None
    cuisine_types: list[str] = Field(default_factory=list)
    special_delicacies: list = Field(default_factory=list)
    description: str | None = None


class DayPlan(BaseModel):
    day_index: int
    date: date
    title: str
    destination_id: uuid.UUID
    destination_name: str
    destination_altitude_m: float | None = None
    activities: list[ActivityItem] = Field(default_factory=list)
    activities_cost: float = 0.0
    hotel: HotelOption | None = None
    hotel_options: list[HotelOption] = Field(default_factory=list)
    restaurant_suggestions: list[RestaurantSuggestion] = Field(default_factory=list)
    transport_cost: float = 0.0
    weather: dict | None = None
    weather_snapshot_id: uuid.UUID | None = None


class LegPlan(BaseModel):
    origin_id: uuid.UUID
    destination_id: uuid.UUID
    distance_km: float | None = None
    duration_minutes: int | None = None
    cab_cost: float = 0.0


class CostBreakdown(BaseModel):
    accommodation: float = 0.0
    transport: float = 0.0
    activities: float = 0.0
    cab: float = 0.0

    @property
    def total(self) -> float:
        return self.accommodation + self.transport + self.activities + self.cab


class CabOption(BaseModel):
    id: uuid.UUID
    type: CabType
    make: str | None = None
    model: str | None = None
    capacity: int = 0
    price_per_day: float | None = None
    price_per_km: float | None = None


class CabSelection(BaseModel):
    id: uuid.UUID | None = None
    type: CabType
    estimated_cost: float = 0.0


class OptionalAttraction(BaseModel):
    poi_id: uuid.UUID
    name: str
    price: float | None = None


class PackageStats(BaseModel):
    cloned_count: int = 0
    is_popular: bool = False


class PackageResult(BaseModel):
    package_id: uuid.UUID | None = None
    title: str
    start_date: date
    people: int
    cab_type: CabType
    total_base_price: float
    per_person_price: float
    currency: str
    days: list[DayPlan]
    legs: list[LegPlan]
    cab_selection: CabSelection
    available_cabs: list[CabOption] = Field(default_factory=list)
    optional_attractions: list[OptionalAttraction] = Field(default_factory=list)
    breakdown: CostBreakdown
    meta: dict = Field(default_factory=dict)
    owner_id: uuid.UUID | None = None
    booking_status: str = "generated"
    is_public: bool = False
    stats: PackageStats | None = None


# ─── Booking / history ───


class BookingResponse(BaseModel):
    package_id: uuid.UUID
    booking_status: str
    outcome: str
    message: str


class BookingHistoryItem(BaseModel):
    package_id: uuid.UUID
    title: str
    start_date: date
    end_date: date
    status: str
    total_price: float
    currency: str
    people: int
    destination_image: str | None = None
