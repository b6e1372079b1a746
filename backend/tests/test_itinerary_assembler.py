import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.config import settings
from app.database import Base
from app.models import Destination, WeatherSnapshot
from app.schemas.package import GeneratePackageRequest
from app.services.errors import DestinationNotFoundError
from app.services.hotel_service import HotelSourcingStrategy
from app.services.itinerary_assembler import GenerationParams, ItineraryAssembler, day_title, package_title
from app.services.weather_cache import REASON_OUTSIDE_HORIZON, WeatherCache

from conftest import StubForecastClient, StubHotelClient, today


def params(*destinations, people=2, tier="optimal", start=None, include=False, activities=()):
    return GenerationParams(
        destination_ids=tuple(d.id for d in destinations),
        people=people,
        tier=tier,
        start_date=start or today() + timedelta(days=1),
        activities=tuple(activities),
        include_common_attractions=include,
    )


def assert_totals_consistent(result):
    b = result.breakdown
    assert result.total_base_price == pytest.approx(b.accommodation + b.transport + b.activities + b.cab)
    assert result.per_person_price == pytest.approx(result.total_base_price / result.people)
    assert b.accommodation == pytest.approx(sum(d.hotel.price for d in result.days if d.hotel))
    assert b.transport == pytest.approx(sum(d.transport_cost for d in result.days))
    assert b.activities == pytest.approx(sum(d.activities_cost for d in result.days))
    assert b.cab == pytest.approx(sum(leg.cab_cost for leg in result.legs))


async def test_hub_first_and_contiguous_days(db, catalog, assembler):
    result = await assembler.assemble(db, params(catalog.gulmarg, catalog.srinagar, catalog.pahalgam))

    assert [d.destination_name for d in result.days] == ["Srinagar", "Gulmarg", "Pahalgam"]
    assert [d.day_index for d in result.days] == [0, 1, 2]
    start = result.start_date
    assert [d.date for d in result.days] == [start + timedelta(days=i) for i in range(3)]
    assert len(result.legs) == 2
    assert result.title == "Srinagar • Gulmarg • Pahalgam Getaway"
    assert result.days[0].title == "Arrival & Check-in"
    assert result.days[1].title == "Day 2 in Gulmarg"


async def test_unknown_destinations_are_dropped(db, catalog, assembler):
    result = await assembler.assemble(db, GenerationParams(
        destination_ids=(uuid.uuid4(), catalog.gulmarg.id), people=2, tier="optimal",
        start_date=today() + timedelta(days=1),
    ))
    assert [d.destination_name for d in result.days] == ["Gulmarg"]
    assert result.legs == []


async def test_all_unknown_destinations_is_not_found(db, catalog, assembler):
    with pytest.raises(DestinationNotFoundError):
        await assembler.assemble(db, GenerationParams(
            destination_ids=(uuid.uuid4(),), people=2, tier="optimal", start_date=today(),
        ))


async def test_cost_breakdown_matches_lines(db, catalog, assembler):
    result = await assembler.assemble(db, params(catalog.srinagar, catalog.gulmarg, include=True))

    assert result.breakdown.accommodation == 6000.0   # cheapest offer (3000) per night
    assert result.breakdown.transport == 1600.0       # (300 + 500) x 2 people
    assert result.breakdown.activities == 4500.0      # 500 + 200x2 + 0 + gondola 1800x2
    assert result.breakdown.cab == 500.0              # 50 km x 10/km
    assert result.total_base_price == 12600.0
    assert result.per_person_price == 6300.0
    assert result.currency == "INR"
    assert_totals_consistent(result)


async def test_missing_pricing_and_route_default_to_zero(db, catalog, assembler):
    result = await assembler.assemble(db, params(catalog.gulmarg, catalog.pahalgam))

    pahalgam = result.days[1]
    assert pahalgam.transport_cost == 0.0
    assert result.legs[0].distance_km is None
    assert result.legs[0].cab_cost == 0.0
    assert_totals_consistent(result)


async def test_cab_selection_by_party_size(db, catalog, assembler):
    couple = await assembler.assemble(db, params(catalog.srinagar, people=2, tier="premium"))
    assert couple.cab_type == "sedan"
    assert couple.cab_selection.id == catalog.cabs.sedan_new.id

    family = await assembler.assemble(db, params(catalog.srinagar, people=5))
    assert family.cab_type == "suv"
    assert family.cab_selection.id == catalog.cabs.suv.id
    assert all(c.capacity >= 5 for c in family.available_cabs)


async def test_attractions_only_when_requested(db, catalog, assembler):
    without = await assembler.assemble(db, params(catalog.srinagar))
    assert without.days[0].activities == []
    assert without.optional_attractions == []

    with_attractions = await assembler.assemble(db, params(catalog.srinagar, include=True))
    assert len(with_attractions.days[0].activities) == 3
    assert len(with_attractions.optional_attractions) == 2


async def test_restaurant_suggestions_follow_tier(db, catalog, assembler):
    result = await assembler.assemble(db, params(catalog.srinagar, tier="budget"))
    assert [r.name for r in result.days[0].restaurant_suggestions] == ["Street Chai"]


async def test_hotel_is_one_night_on_the_day(db, catalog, assembler):
    result = await assembler.assemble(db, params(catalog.srinagar, catalog.gulmarg))
    for day in result.days:
        assert day.hotel.hotel_id == "H2"
        assert day.hotel.check_in_date == day.date
        assert day.hotel.check_out_date == day.date + timedelta(days=1)
        assert {o.hotel_id for o in day.hotel_options} == {"H1", "H2", "H3"}


async def test_no_hotel_offers_costs_nothing(db, catalog, forecast_client):
    assembler = ItineraryAssembler(
        hotels=HotelSourcingStrategy(client=StubHotelClient(prices={}), cache=None),
        weather=WeatherCache(client=forecast_client),
    )
    result = await assembler.assemble(db, params(catalog.srinagar))
    assert result.days[0].hotel is None
    assert result.breakdown.accommodation == 0.0
    assert_totals_consistent(result)


async def test_weather_gaps_are_reported(db, catalog, assembler):
    late = today() + timedelta(days=settings.forecast_horizon_days)
    result = await assembler.assemble(db, params(catalog.srinagar, catalog.gulmarg, start=late))

    assert result.days[0].weather is not None
    assert result.days[1].weather is None
    gaps = result.meta["weather_null_days"]
    assert gaps == [{
        "date": (late + timedelta(days=1)).isoformat(),
        "destination_id": str(catalog.gulmarg.id),
        "reason": REASON_OUTSIDE_HORIZON,
    }]


async def test_failing_weather_provider_does_not_fail_generation(db, catalog):
    assembler = ItineraryAssembler(
        hotels=HotelSourcingStrategy(client=StubHotelClient(), cache=None),
        weather=WeatherCache(client=StubForecastClient(fail=True)),
    )
    result = await assembler.assemble(db, params(catalog.srinagar))
    assert result.days[0].weather is None
    assert len(result.meta["weather_null_days"]) == 1


async def test_weather_fetched_once_per_destination(db, catalog, assembler, forecast_client):
    await assembler.assemble(db, params(catalog.srinagar, catalog.gulmarg))
    await assembler.assemble(db, params(catalog.srinagar, catalog.gulmarg))
    assert forecast_client.calls == 2


def test_default_start_date_and_fingerprint(catalog):
    req = GeneratePackageRequest(
        destination_ids=[catalog.gulmarg.id, catalog.srinagar.id], people=2, price_bucket="budget"
    )
    p = GenerationParams.from_request(req)
    assert p.start_date == today() + timedelta(days=settings.default_start_offset_days)

    reordered = GenerationParams.from_request(req.model_copy(
        update={"destination_ids": [catalog.srinagar.id, catalog.gulmarg.id]}
    ))
    assert p.fingerprint() == reordered.fingerprint()
    assert p.fingerprint() != GenerationParams.from_request(req.model_copy(update={"people": 3})).fingerprint()


def test_stored_params_round_trip(catalog):
    p = params(catalog.srinagar, catalog.gulmarg, include=True, activities=["adventure"])
    again = GenerationParams.from_stored(p.to_stored(), p.start_date)
    assert again == p


def test_titles():
    assert day_title(0, "Srinagar") == "Arrival & Check-in"
    assert day_title(3, "Sonamarg") == "Day 4 in Sonamarg"
    assert package_title([]) == "Kashmir Getaway"


async def test_failed_weather_write_does_not_poison_the_session(db, catalog):
    class BrokenCache(WeatherCache):
        async def get_many(self, db, wanted):
            dest, day = wanted[0]
            db.add_all([
                WeatherSnapshot(destination_id=dest.id, snapshot_date=day, mapped={"daily": []}),
                WeatherSnapshot(destination_id=dest.id, snapshot_date=day, mapped={"daily": []}),
            ])
            await db.flush()

    assembler = ItineraryAssembler(
        hotels=HotelSourcingStrategy(client=StubHotelClient(), cache=None),
        weather=BrokenCache(client=StubForecastClient()),
    )
    suv_id = catalog.cabs.suv.id
    result = await assembler.assemble(db, params(catalog.srinagar, people=5))

    assert result.cab_selection.id == suv_id
    assert result.days[0].weather is None


async def test_concurrent_cold_cache_generations_both_succeed(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async with factory() as db:
        srinagar = Destination(name="Srinagar", slug="srinagar", center_lat=34.0837, center_lng=74.7973)
        db.add(srinagar)
        await db.commit()

    class InLockstepForecasts(StubForecastClient):
        def __init__(self):
            super().__init__()
            self.barrier = asyncio.Barrier(2)

        async def get_forecast(self, latitude, longitude):
            await self.barrier.wait()
            return await super().get_forecast(latitude, longitude)

    forecasts = InLockstepForecasts()
    assembler = ItineraryAssembler(
        hotels=HotelSourcingStrategy(client=StubHotelClient(), cache=None),
        weather=WeatherCache(client=forecasts),
    )

    async def generate(people):
        async with factory() as db:
            return await assembler.assemble(db, GenerationParams(
                destination_ids=(srinagar.id,), people=people, tier="optimal",
                start_date=today() + timedelta(days=1),
            ))

    try:
        results = await asyncio.wait_for(asyncio.gather(generate(2), generate(3)), timeout=30)
    finally:
        await engine.dispose()

    assert forecasts.calls == 2
    assert [r.people for r in results] == [2, 3]
    assert all(r.days[0].weather is not None for r in results)
    assert all("weather_null_days" not in r.meta for r in results)
