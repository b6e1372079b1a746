"""Itinerary assembler — turns a generation request into a fully priced multi-day package."""

import asyncio
import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.schemas.package import (
    ActivityItem,
    CabSelection,
    CostBreakdown,
    DayPlan,
    GeneratePackageRequest,
    HotelOption,
    LegPlan,
    PackageResult,
    RestaurantSuggestion,
)
from app.services.amadeus_client import HotelOffer
from app.services.attraction_service import AttractionCurator, CuratedAttractions, attraction_curator
from app.services.destination_service import DestinationInfo, load_destinations, order_destinations
from app.services.errors import DestinationNotFoundError
from app.services.hotel_service import HotelSourcingStrategy, LodgingResult, hotel_sourcing
from app.services.pricing_catalog import ZERO_RATES, PricingCatalog, pricing_catalog, suggest_cab_type
from app.services.restaurant_service import RestaurantDirectory, restaurant_directory
from app.services.route_matrix import RouteMatrix, route_matrix
from app.services.weather_cache import WeatherCache, WeatherLookup, gap_reason, weather_cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    """Normalized generation input. Stored on the package so it can be regenerated."""
    destination_ids: tuple[uuid.UUID, ...]
    people: int
    tier: str
    start_date: date
    activities: tuple[str, ...] = ()
    include_common_attractions: bool = False

    @classmethod
    def from_request(cls, request: GeneratePackageRequest) -> "GenerationParams":
        start = request.start_date or (
            datetime.now(timezone.utc).date() + timedelta(days=settings.default_start_offset_days)
        )
        return cls(
            destination_ids=tuple(request.destination_ids),
            people=request.people,
            tier=request.price_bucket,
            start_date=start,
            activities=tuple(request.activities or ()),
            include_common_attractions=request.include_common_attractions,
        )

    @classmethod
    def from_stored(cls, stored: dict, start_date: date) -> "GenerationParams":
        return cls(
            destination_ids=tuple(uuid.UUID(str(d)) for d in stored.get("destination_ids") or []),
            people=int(stored.get("people") or 1),
            tier=stored.get("price_bucket") or "optimal",
            start_date=start_date,
            activities=tuple(stored.get("activities") or ()),
            include_common_attractions=bool(stored.get("include_common_attractions")),
        )

    def to_stored(self) -> dict:
        return {
            "destination_ids": [str(d) for d in self.destination_ids],
            "people": self.people,
            "price_bucket": self.tier,
            "start_date": self.start_date.isoformat(),
            "activities": list(self.activities),
            "include_common_attractions": self.include_common_attractions,
        }

    def fingerprint(self) -> str:
        """Dedup key: sorted destinations, start date, party size and tier."""
        raw = json.dumps({
            "destination_ids": sorted(str(d) for d in self.destination_ids),
            "start_date": self.start_date.isoformat(),
            "people": self.people,
            "tier": self.tier,
        }, sort_keys=True)
        return hashlib.sha256(raw.encode()).hexdigest()


def day_title(index: int, destination_name: str) -> str:
    return "Arrival & Check-in" if index == 0 else f"Day {index + 1} in {destination_name}"


def package_title(names: list[str]) -> str:
    return f"{' • '.join(names)} Getaway" if names else "Kashmir Getaway"


def to_hotel_option(offer: HotelOffer, check_in: date, check_out: date, distance_km: float | None = None) -> HotelOption:
    return HotelOption(
        hotel_id=offer.hotel_id,
        name=offer.name,
        price=offer.price,
        currency=offer.currency,
        board_type=offer.board_type,
        distance_km=distance_km,
        latitude=offer.latitude,
        longitude=offer.longitude,
        check_in_date=check_in,
        check_out_date=check_out,
    )


@dataclass
class _Facets:
    """Everything fetched for one assembly before the days are laid out."""
    rates: dict = field(default_factory=dict)
    legs: list[LegPlan] = field(default_factory=list)
    restaurants: dict[uuid.UUID, list[RestaurantSuggestion]] = field(default_factory=dict)
    attractions: CuratedAttractions = field(default_factory=CuratedAttractions)
    weather: dict = field(default_factory=dict)
    lodging: list[LodgingResult] = field(default_factory=list)


class ItineraryAssembler:
    """Builds a PackageResult from catalog data, the weather cache and hotel sourcing.

    Catalog reads share the caller's session and run one after another;
    provider calls (hotels, weather backfill) run concurrently.
    """

    def __init__(
        self,
        catalog: PricingCatalog | None = None,
        routes: RouteMatrix | None = None,
        weather: WeatherCache | None = None,
        hotels: HotelSourcingStrategy | None = None,
        attractions: AttractionCurator | None = None,
        restaurants: RestaurantDirectory | None = None,
        max_concurrency: int | None = None,
    ):
        self._catalog = catalog or pricing_catalog
        self._routes = routes or route_matrix
        self._weather = weather or weather_cache
        self._hotels = hotels or hotel_sourcing
        self._attractions = attractions or attraction_curator
        self._restaurants = restaurants or restaurant_directory
        self._max_concurrency = max_concurrency or settings.max_concurrent_lookups

    async def assemble(self, db: AsyncSession, params: GenerationParams) -> PackageResult:
        if not params.destination_ids:
            raise ValueError("at least one destination is required")

        known = await load_destinations(db, params.destination_ids)
        ordered = order_destinations(list(params.destination_ids), known)
        if not ordered:
            raise DestinationNotFoundError("None of the requested destinations exist")
        destinations = [known[d] for d in ordered]
        dates = [params.start_date + timedelta(days=i) for i in range(len(destinations))]

        facets = await self._gather_facets(db, params, destinations, dates)

        cab = await self._catalog.select_cab(db, params.tier, params.people)
        available = await self._catalog.available_cabs(db, params.people)

        meta: dict = {}
        days: list[DayPlan] = []
        for index, (dest, day) in enumerate(zip(destinations, dates)):
            rates = facets.rates.get(dest.id, ZERO_RATES)
            lodging = facets.lodging[index]
            check_out = day + timedelta(days=1)
            weather: WeatherLookup = facets.weather.get((dest.id, day), WeatherLookup())
            if weather.daily is None:
                meta.setdefault("weather_null_days", []).append({
                    "date": day.isoformat(),
                    "destination_id": str(dest.id),
                    "reason": gap_reason(day),
                })

            activities: list[ActivityItem] = facets.attractions.included.get(dest.id, [])
            days.append(DayPlan(
                day_index=index,
                date=day,
                title=day_title(index, dest.name),
                destination_id=dest.id,
                destination_name=dest.name,
                destination_altitude_m=dest.altitude_m,
                activities=activities,
                activities_cost=round(sum(a.cost for a in activities), 2),
                hotel=to_hotel_option(lodging.selected, day, check_out) if lodging.selected else None,
                hotel_options=[to_hotel_option(o, day, check_out) for o in lodging.offers],
                restaurant_suggestions=facets.restaurants.get(dest.id, []),
                transport_cost=round(rates.transport * params.people, 2),
                weather=weather.daily,
                weather_snapshot_id=weather.snapshot_id,
            ))

        per_km = float(cab.base_price_per_km) if cab else 0.0
        legs = [
            leg.model_copy(update={"cab_cost": round((leg.distance_km or 0.0) * per_km, 2)})
            for leg in facets.legs
        ]

        breakdown = CostBreakdown(
            accommodation=round(sum(d.hotel.price or 0.0 for d in days if d.hotel), 2),
            transport=round(sum(d.transport_cost for d in days), 2),
            activities=round(sum(d.activities_cost for d in days), 2),
            cab=round(sum(leg.cab_cost for leg in legs), 2),
        )
        total = round(breakdown.total, 2)
        suggested = suggest_cab_type(params.people)

        logger.info(
            f"Assembled {len(days)}-day {params.tier} package for {params.people} "
            f"(total {total} {settings.package_currency})"
        )
        return PackageResult(
            title=package_title([d.name for d in destinations]),
            start_date=params.start_date,
            people=params.people,
            cab_type=suggested,
            total_base_price=total,
            per_person_price=round(total / params.people, 2),
            currency=settings.package_currency,
            days=days,
            legs=legs,
            cab_selection=CabSelection(
                id=cab.id if cab else None,
                type=cab.cab_type if cab else suggested,
                estimated_cost=breakdown.cab,
            ),
            available_cabs=available,
            optional_attractions=facets.attractions.optional,
            breakdown=breakdown,
            meta=meta,
        )

    async def _gather_facets(
        self,
        db: AsyncSession,
        params: GenerationParams,
        destinations: list[DestinationInfo],
        dates: list[date],
    ) -> _Facets:
        """Fetch each facet; a failing facet degrades to empty instead of failing the package."""
        ids = [d.id for d in destinations]
        facets = _Facets(attractions=CuratedAttractions(included={d: [] for d in ids}))

        try:
            facets.rates = await self._catalog.get_rates(db, ids, params.tier)
        except Exception as e:
            logger.warning(f"Pricing lookup failed, using zero rates: {e}")
            await db.rollback()

        try:
            facets.legs = await self._routes.build_legs(db, ids)
        except Exception as e:
            logger.warning(f"Route matrix lookup failed: {e}")
            await db.rollback()
            facets.legs = [LegPlan(origin_id=a, destination_id=b) for a, b in zip(ids, ids[1:])]

        try:
            facets.restaurants = await self._restaurants.top_for_destinations(db, ids, params.tier)
        except Exception as e:
            logger.warning(f"Restaurant lookup failed: {e}")
            await db.rollback()

        if params.include_common_attractions:
            try:
                facets.attractions = await self._attractions.curate(
                    db, ids, params.people, list(params.activities)
                )
            except Exception as e:
                logger.warning(f"Attraction lookup failed: {e}")
                await db.rollback()

        try:
            facets.weather = await self._weather.get_many(db, list(zip(destinations, dates)))
        except Exception as e:
            logger.warning(f"Weather lookup failed: {e}")
            await db.rollback()

        facets.lodging = await self._lodging(params, destinations, dates, facets.rates)
        return facets

    async def _lodging(
        self,
        params: GenerationParams,
        destinations: list[DestinationInfo],
        dates: list[date],
        rates: dict,
    ) -> list[LodgingResult]:
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def one_night(dest: DestinationInfo, day: date) -> LodgingResult:
            async with semaphore:
                return await self._hotels.find_lodging(
                    dest.latitude,
                    dest.longitude,
                    params.tier,
                    check_in=day,
                    check_out=day + timedelta(days=1),
                    adults=params.people,
                    accommodation_cap=rates.get(dest.id, ZERO_RATES).accommodation,
                    currency=settings.package_currency,
                )

        results = await asyncio.gather(
            *(one_night(d, day) for d, day in zip(destinations, dates)), return_exceptions=True
        )
        lodging = []
        for dest, outcome in zip(destinations, results):
            if isinstance(outcome, Exception):
                logger.warning(f"Hotel lookup failed for {dest.name}: {outcome}")
                lodging.append(LodgingResult())
            else:
                lodging.append(outcome)
        return lodging


itinerary_assembler = ItineraryAssembler()
