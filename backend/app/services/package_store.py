"""Package store — persistence, read-back, targeted edits, rescheduling, cloning and history."""

import logging
import uuid
from datetime import date, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.package import Package, PackageDay, PackageDayActivity, PackageDayRestaurant, PackageLeg
from app.schemas.package import (
    ActivityItem,
    BookingHistoryItem,
    CabSelection,
    CostBreakdown,
    DayConfiguration,
    DayPlan,
    HotelOption,
    LegPlan,
    PackageResult,
    PackageStats,
    RestaurantSuggestion,
    UpdatePackageRequest,
)
from app.services.attraction_service import AttractionCurator, attraction_curator
from app.services.booking_workflow import BOOKED, BookingDecision
from app.services.destination_service import load_destinations
from app.services.errors import (
    InvalidConfigurationError,
    PackageAccessDeniedError,
    PackageLockedError,
    PackageNotFoundError,
)
from app.services.itinerary_assembler import GenerationParams, ItineraryAssembler, itinerary_assembler
from app.services.pricing_catalog import PricingCatalog, pricing_catalog

logger = logging.getLogger(__name__)


def _f(value) -> float:
    return float(value) if value is not None else 0.0


def _opt_f(value) -> float | None:
    return float(value) if value is not None else None


def _build_days(result: PackageResult) -> list[PackageDay]:
    return [
        PackageDay(
            day_index=day.day_index,
            day_date=day.date,
            title=day.title,
            destination_id=day.destination_id,
            destination_name=day.destination_name,
            destination_altitude_m=day.destination_altitude_m,
            activities_cost=day.activities_cost,
            transport_cost=day.transport_cost,
            hotel=day.hotel.model_dump(mode="json") if day.hotel else None,
            hotel_options=[o.model_dump(mode="json") for o in day.hotel_options],
            weather_snapshot_id=day.weather_snapshot_id,
            weather_daily=day.weather,
            activities=[_activity_row(a) for a in day.activities],
            restaurants=[
                PackageDayRestaurant(
                    restaurant_id=r.id,
                    name=r.name,
                    price_range=r.price_range,
                    suggestion=r.model_dump(mode="json"),
                )
                for r in day.restaurant_suggestions
            ],
        )
        for day in result.days
    ]


def _build_legs(result: PackageResult) -> list[PackageLeg]:
    return [
        PackageLeg(
            sequence=i,
            origin_id=leg.origin_id,
            destination_id=leg.destination_id,
            distance_km=leg.distance_km,
            duration_minutes=leg.duration_minutes,
            cab_cost=leg.cab_cost,
        )
        for i, leg in enumerate(result.legs)
    ]


def _activity_row(item: ActivityItem) -> PackageDayActivity:
    return PackageDayActivity(
        poi_id=item.poi_id,
        name=item.name,
        pricing_type=item.pricing_type,
        base_price=item.base_price,
        cost=item.cost,
        details=item.metadata,
    )


def _apply_header(pkg: Package, result: PackageResult, params: GenerationParams) -> None:
    pkg.title = result.title
    pkg.start_date = result.start_date
    pkg.people = result.people
    pkg.cab_type = result.cab_type
    pkg.cab_id = result.cab_selection.id
    pkg.total_base_price = result.total_base_price
    pkg.per_person_price = result.per_person_price
    pkg.currency = result.currency
    pkg.request = params.to_stored()
    pkg.breakdown = result.breakdown.model_dump()
    pkg.available_cabs = [c.model_dump(mode="json") for c in result.available_cabs]
    pkg.destination_ids = [str(d.destination_id) for d in result.days]
    pkg.weather_snapshot_ids = [str(d.weather_snapshot_id) for d in result.days if d.weather_snapshot_id]


def _set_totals(pkg: Package, breakdown: dict) -> None:
    pkg.breakdown = breakdown
    total = round(sum(_f(breakdown.get(k)) for k in ("accommodation", "transport", "activities", "cab")), 2)
    pkg.total_base_price = total
    pkg.per_person_price = round(total / pkg.people, 2) if pkg.people else total


class PackageStore:
    """Owns the package tables. Every write path commits before returning."""

    def __init__(
        self,
        assembler: ItineraryAssembler | None = None,
        catalog: PricingCatalog | None = None,
        attractions: AttractionCurator | None = None,
    ):
        self._assembler = assembler or itinerary_assembler
        self._catalog = catalog or pricing_catalog
        self._attractions = attractions or attraction_curator

    # ─── Persist / read ───

    async def persist(
        self,
        db: AsyncSession,
        result: PackageResult,
        params: GenerationParams,
        owner_id: uuid.UUID | None = None,
        cloned_from_id: uuid.UUID | None = None,
    ) -> uuid.UUID:
        pkg = Package(
            user_id=owner_id,
            cloned_from_id=cloned_from_id,
            meta=dict(result.meta),
            days=_build_days(result),
            legs=_build_legs(result),
        )
        _apply_header(pkg, result, params)
        db.add(pkg)
        await db.commit()
        logger.info(f"Persisted package {pkg.id} ({len(result.days)} days)")
        return pkg.id

    async def load(self, db: AsyncSession, package_id: uuid.UUID) -> Package:
        result = await db.execute(
            select(Package)
            .where(Package.id == package_id)
            .options(
                selectinload(Package.days).selectinload(PackageDay.activities),
                selectinload(Package.days).selectinload(PackageDay.restaurants),
                selectinload(Package.legs),
            )
            .execution_options(populate_existing=True)
        )
        pkg = result.scalar_one_or_none()
        if pkg is None:
            raise PackageNotFoundError(f"Package {package_id} not found")
        return pkg

    async def read(self, db: AsyncSession, package_id: uuid.UUID) -> PackageResult:
        pkg = await self.load(db, package_id)
        cloned = await db.execute(
            select(func.count()).select_from(Package).where(Package.cloned_from_id == package_id)
        )
        cloned_count = cloned.scalar() or 0

        cab_type = pkg.cab_type
        if pkg.cab_id:
            cab = await self._catalog.get_cab(db, pkg.cab_id)
            if cab:
                cab_type = cab.cab_type

        breakdown = CostBreakdown(**(pkg.breakdown or {}))
        return PackageResult(
            package_id=pkg.id,
            title=pkg.title,
            start_date=pkg.start_date,
            people=pkg.people,
            cab_type=pkg.cab_type,
            total_base_price=_f(pkg.total_base_price),
            per_person_price=_f(pkg.per_person_price),
            currency=pkg.currency,
            days=[self._day_plan(d) for d in pkg.days],
            legs=[
                LegPlan(
                    origin_id=leg.origin_id,
                    destination_id=leg.destination_id,
                    distance_km=_opt_f(leg.distance_km),
                    duration_minutes=leg.duration_minutes,
                    cab_cost=_f(leg.cab_cost),
                )
                for leg in pkg.legs
            ],
            cab_selection=CabSelection(id=pkg.cab_id, type=cab_type, estimated_cost=breakdown.cab),
            available_cabs=pkg.available_cabs or [],
            breakdown=breakdown,
            meta=pkg.meta or {},
            owner_id=pkg.user_id,
            booking_status=pkg.booking_status,
            is_public=pkg.is_public,
            stats=PackageStats(
                cloned_count=cloned_count,
                is_popular=cloned_count >= settings.popular_clone_threshold,
            ),
        )

    def _day_plan(self, day: PackageDay) -> DayPlan:
        return DayPlan(
            day_index=day.day_index,
            date=day.day_date,
            title=day.title,
            destination_id=day.destination_id,
            destination_name=day.destination_name,
            destination_altitude_m=_opt_f(day.destination_altitude_m),
            activities=[
                ActivityItem(
                    poi_id=a.poi_id,
                    name=a.name,
                    pricing_type=a.pricing_type,
                    base_price=_opt_f(a.base_price),
                    cost=_f(a.cost),
                    metadata=a.details or {},
                )
                for a in day.activities
            ],
            activities_cost=_f(day.activities_cost),
            hotel=HotelOption(**day.hotel) if day.hotel else None,
            hotel_options=[HotelOption(**o) for o in day.hotel_options or []],
            restaurant_suggestions=[RestaurantSuggestion(**r.suggestion) for r in day.restaurants],
            transport_cost=_f(day.transport_cost),
            weather=day.weather_daily,
            weather_snapshot_id=day.weather_snapshot_id,
        )

    # ─── Update ───

    async def update(
        self,
        db: AsyncSession,
        package_id: uuid.UUID,
        changes: UpdatePackageRequest,
        requester_id: uuid.UUID | None = None,
    ) -> PackageResult:
        """Apply a patch. A new start date regenerates first; other fields then edit the fresh rows."""
        pkg = await self.load(db, package_id)
        if pkg.booking_status == BOOKED:
            raise PackageLockedError("Booked packages cannot be modified")
        if pkg.user_id is not None and pkg.user_id != requester_id:
            raise PackageAccessDeniedError("Only the owner can modify this package")

        rescheduled = changes.start_date is not None
        if rescheduled:
            pkg = await self._reschedule(db, pkg, changes.start_date)

        breakdown = dict(pkg.breakdown or {})
        if changes.cab_id is not None:
            breakdown["cab"] = await self._swap_cab(db, pkg, changes.cab_id)

        if changes.day_configurations:
            days = {d.day_index: d for d in pkg.days}
            for cfg in changes.day_configurations:
                day = days.get(cfg.day_index)
                if day is None:
                    raise InvalidConfigurationError(f"Package has no day {cfg.day_index}")
                await self._configure_day(db, pkg, day, cfg, strict=not rescheduled)
            breakdown["accommodation"] = round(
                sum(_f((d.hotel or {}).get("price")) for d in pkg.days), 2
            )
            breakdown["activities"] = round(sum(_f(d.activities_cost) for d in pkg.days), 2)

        if changes.cab_id is not None or changes.day_configurations:
            _set_totals(pkg, breakdown)

        if changes.is_public is not None:
            pkg.is_public = changes.is_public

        await db.commit()
        return await self.read(db, package_id)

    async def _reschedule(self, db: AsyncSession, pkg: Package, start_date: date) -> Package:
        """Regenerate with the stored parameters and replace every day and leg in one transaction."""
        package_id = pkg.id
        params = GenerationParams.from_stored(pkg.request or {}, start_date)
        result = await self._assembler.assemble(db, params)

        # assembly may have committed weather rows; reload before mutating
        pkg = await self.load(db, package_id)
        pkg.days.clear()
        pkg.legs.clear()
        await db.flush()

        pkg.days.extend(_build_days(result))
        pkg.legs.extend(_build_legs(result))
        _apply_header(pkg, result, params)
        meta = dict(result.meta)
        if (pkg.meta or {}).get("cloned_from"):
            meta["cloned_from"] = pkg.meta["cloned_from"]
        pkg.meta = meta
        await db.flush()
        logger.info(f"Rescheduled package {package_id} to {start_date}")
        return pkg

    async def _swap_cab(self, db: AsyncSession, pkg: Package, cab_id: uuid.UUID) -> float:
        cab = await self._catalog.get_cab(db, cab_id)
        if cab is None:
            raise InvalidConfigurationError(f"Unknown cab {cab_id}")
        per_km = _f(cab.base_price_per_km)
        for leg in pkg.legs:
            leg.cab_cost = round(_f(leg.distance_km) * per_km, 2)
        pkg.cab_id = cab.id
        return round(sum(_f(leg.cab_cost) for leg in pkg.legs), 2)

    async def _configure_day(
        self, db: AsyncSession, pkg: Package, day: PackageDay, cfg: DayConfiguration, strict: bool
    ) -> None:
        if cfg.hotel_id is not None:
            option = next((o for o in day.hotel_options or [] if o.get("hotel_id") == cfg.hotel_id), None)
            if option is None:
                if strict:
                    raise InvalidConfigurationError(
                        f"Hotel {cfg.hotel_id} is not an option for day {cfg.day_index}"
                    )
                logger.info(f"Ignoring stale hotel {cfg.hotel_id} for rescheduled day {cfg.day_index}")
            else:
                check_in = day.day_date
                day.hotel = {
                    **option,
                    "check_in_date": check_in.isoformat(),
                    "check_out_date": (check_in + timedelta(days=1)).isoformat(),
                }

        if cfg.activity_ids is not None:
            items = await self._attractions.resolve_activities(db, cfg.activity_ids, pkg.people)
            day.activities.clear()
            day.activities.extend(_activity_row(a) for a in items)
            day.activities_cost = round(sum(a.cost for a in items), 2)

    # ─── Booking ───

    async def apply_booking(
        self, db: AsyncSession, package_id: uuid.UUID, decision: BookingDecision, caller_id: uuid.UUID | None
    ) -> Package:
        pkg = await self.load(db, package_id)
        if decision.status is None:
            return pkg
        if decision.claim_owner and pkg.user_id is None:
            pkg.user_id = caller_id
        pkg.booking_status = decision.status
        await db.commit()
        logger.info(f"Package {package_id} booking status -> {decision.status}")
        return pkg

    # ─── Clone ───

    async def clone(
        self,
        db: AsyncSession,
        source_id: uuid.UUID,
        start_date: date,
        requester_id: uuid.UUID | None,
    ) -> PackageResult:
        source = await self.load(db, source_id)
        if not source.is_public and (source.user_id is None or source.user_id != requester_id):
            raise PackageAccessDeniedError("Only public or owned packages can be cloned")

        params = GenerationParams.from_stored(source.request or {}, start_date)
        result = await self._assembler.assemble(db, params)
        result.meta["cloned_from"] = str(source_id)
        package_id = await self.persist(
            db, result, params, owner_id=requester_id, cloned_from_id=source_id
        )
        logger.info(f"Cloned package {source_id} -> {package_id}")
        return await self.read(db, package_id)

    # ─── History ───

    async def history(
        self, db: AsyncSession, user_id: uuid.UUID, limit: int | None = None
    ) -> list[BookingHistoryItem]:
        result = await db.execute(
            select(Package)
            .where(Package.user_id == user_id)
            .order_by(Package.created_at.desc())
            .limit(limit or settings.history_limit)
        )
        packages = result.scalars().all()

        first_ids = {uuid.UUID(p.destination_ids[0]) for p in packages if p.destination_ids}
        destinations = await load_destinations(db, first_ids)

        items = []
        for p in packages:
            image = None
            if p.destination_ids:
                dest = destinations.get(uuid.UUID(p.destination_ids[0]))
                if dest and dest.images:
                    first = dest.images[0]
                    image = first.get("url") if isinstance(first, dict) else first
            nights = max(len(p.destination_ids or []) - 1, 0)
            items.append(BookingHistoryItem(
                package_id=p.id,
                title=p.title,
                start_date=p.start_date,
                end_date=p.start_date + timedelta(days=nights),
                status=p.booking_status,
                total_price=_f(p.total_base_price),
                currency=p.currency,
                people=p.people,
                destination_image=image,
            ))
        return items


package_store = PackageStore()
