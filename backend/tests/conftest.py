import os

os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AMADEUS_CLIENT_ID"] = ""
os.environ["TOMORROW_API_KEY"] = ""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import Base
from app.dependencies import create_access_token
from app.models import (
    CabInventory,
    Destination,
    DestinationDistance,
    DestinationPricingBucket,
    Poi,
    PoiPricing,
    Restaurant,
    User,
)
from app.services.amadeus_client import HotelListing, HotelOffer
from app.services.forecast_client import Forecast, ForecastDay
from app.services.hotel_service import HotelSourcingStrategy
from app.services.itinerary_assembler import ItineraryAssembler
from app.services.package_service import PackageService
from app.services.package_store import PackageStore
from app.services.request_dedup import RequestDeduplicator
from app.services.weather_cache import WeatherCache


def today() -> date:
    return datetime.now(timezone.utc).date()


# ─── Provider stubs ───


class StubHotelClient:
    """Returns the same nearby hotels for every search; records every call."""

    def __init__(self, listings=None, prices=None):
        self.listings = listings if listings is not None else [
            HotelListing(hotel_id="H1", name="Lake View", distance_km=1.2, latitude=34.08, longitude=74.79),
            HotelListing(hotel_id="H2", name="Pine Lodge", distance_km=2.5, latitude=34.09, longitude=74.80),
            HotelListing(hotel_id="H3", name="Hill Top", distance_km=4.0, latitude=34.10, longitude=74.81),
        ]
        self.prices = prices if prices is not None else {"H1": 4000.0, "H2": 3000.0, "H3": 5000.0}
        self.search_calls = []
        self.offer_calls = []

    async def search_hotels_by_geocode(self, latitude, longitude, radius_km=5, ratings=None):
        self.search_calls.append((radius_km, tuple(ratings or [])))
        return list(self.listings)

    async def get_hotel_offers(
        self, hotel_ids, adults, check_in, check_out, price_range=None, board_type=None, currency="INR"
    ):
        self.offer_calls.append({"hotel_ids": list(hotel_ids), "price_range": price_range})
        return [
            HotelOffer(hotel_id=h, name=h, price=self.prices[h], currency=currency,
                       board_type=board_type, latitude=None, longitude=None)
            for h in hotel_ids
            if h in self.prices
        ]


class StubForecastClient:
    """Forecast from today through the horizon, like the real provider."""

    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail

    async def get_forecast(self, latitude, longitude):
        self.calls += 1
        if self.fail:
            raise RuntimeError("forecast provider down")
        start = today()
        return Forecast(days=[
            ForecastDay(
                day=start + timedelta(days=i),
                daily={"date": (start + timedelta(days=i)).isoformat(), "temperature_max": 10.0 + i},
                hourly=[],
            )
            for i in range(settings.forecast_horizon_days + 1)
        ])


# ─── Database ───


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalog(db):
    """Three Kashmir destinations, pricing for two of them, one route and a small fleet."""
    srinagar = Destination(
        name="Srinagar", slug="srinagar", center_lat=34.0837, center_lng=74.7973,
        altitude_m=1585, images=["https://img.example/srinagar.jpg"],
    )
    gulmarg = Destination(name="Gulmarg", slug="gulmarg", center_lat=34.0484, center_lng=74.3805, altitude_m=2650)
    pahalgam = Destination(name="Pahalgam", slug="pahalgam", center_lat=34.0161, center_lng=75.3150, altitude_m=2740)
    db.add_all([srinagar, gulmarg, pahalgam])
    await db.flush()

    for dest, acc, transport in ((srinagar, 4500, 300), (gulmarg, 6000, 500)):
        for tier, factor in (("budget", 0.6), ("optimal", 1.0), ("premium", 2.0)):
            db.add(DestinationPricingBucket(
                destination_id=dest.id, bucket_type=tier,
                accommodation_price=acc * factor, transport_price=transport * factor,
            ))

    db.add(DestinationDistance(origin_id=srinagar.id, destination_id=gulmarg.id, distance_km=50, duration_minutes=90))

    cabs = SimpleNamespace(
        hatchback=CabInventory(cab_type="hatchback", make="Maruti", model="Swift", model_year=2019,
                               base_price_per_km=8, per_day_charge=1800, capacity=4),
        sedan_new=CabInventory(cab_type="sedan", make="Honda", model="City", model_year=2022,
                               base_price_per_km=12, per_day_charge=2500, capacity=4),
        sedan_cheap=CabInventory(cab_type="sedan", make="Toyota", model="Etios", model_year=2017,
                                 base_price_per_km=10, per_day_charge=2200, capacity=4),
        suv=CabInventory(cab_type="suv", make="Toyota", model="Innova", model_year=2021,
                         base_price_per_km=16, per_day_charge=3500, capacity=7),
        tempo=CabInventory(cab_type="tempo", make="Force", model="Traveller", model_year=2020,
                           base_price_per_km=25, per_day_charge=6000, capacity=12),
        retired=CabInventory(cab_type="sedan", make="Hyundai", model="Xcent", model_year=2015,
                             base_price_per_km=5, per_day_charge=1500, capacity=4, is_available=False),
    )
    db.add_all(vars(cabs).values())

    restaurants = [
        Restaurant(destination_id=srinagar.id, name=f"Wazwan {i}", price_range="mid_range",
                   average_rating=4.0 + i / 10, total_ratings=100 * i, cuisine_types=["Kashmiri"])
        for i in range(5)
    ]
    restaurants.append(Restaurant(destination_id=srinagar.id, name="Street Chai", price_range="budget",
                                  average_rating=4.9, total_ratings=50))
    db.add_all(restaurants)

    pois = []
    for i, (pricing_type, price) in enumerate(
        [("one_time", 500), ("per_person", 200), ("free", 0), ("rental", 1500), ("per_person", 100)]
    ):
        poi = Poi(destination_id=srinagar.id, name=f"Attraction {i}", category_name="sightseeing",
                  average_rating=4.8 - i / 10)
        poi.pricing = PoiPricing(pricing_type=pricing_type, base_price=price, is_purchasable=True)
        pois.append(poi)
    gondola = Poi(destination_id=gulmarg.id, name="Gondola", category_name="adventure", average_rating=4.9)
    gondola.pricing = PoiPricing(pricing_type="per_person", base_price=1800, is_purchasable=True)
    museum = Poi(destination_id=gulmarg.id, name="Closed Museum", category_name="culture", average_rating=5.0)
    museum.pricing = PoiPricing(pricing_type="one_time", base_price=100, is_purchasable=False)
    pois += [gondola, museum]
    db.add_all(pois)
    await db.commit()

    return SimpleNamespace(
        srinagar=srinagar, gulmarg=gulmarg, pahalgam=pahalgam,
        cabs=cabs, pois=pois, gondola=gondola, museum=museum,
    )


@pytest.fixture
async def users(db):
    verified = User(email="verified@example.com", phone="+919800000001",
                    verification_status="verified", kyc_status="verified")
    unverified = User(email="new@example.com", phone=None)
    kyc_pending = User(email="kyc@example.com", phone="+919800000002",
                       verification_status="verified", kyc_status="pending")
    other = User(email="other@example.com", phone="+919800000003",
                 verification_status="verified", kyc_status="verified")
    db.add_all([verified, unverified, kyc_pending, other])
    await db.commit()
    return SimpleNamespace(verified=verified, unverified=unverified, kyc_pending=kyc_pending, other=other)


# ─── Services ───


@pytest.fixture
def hotel_client():
    return StubHotelClient()


@pytest.fixture
def forecast_client():
    return StubForecastClient()


@pytest.fixture
def assembler(hotel_client, forecast_client):
    return ItineraryAssembler(
        hotels=HotelSourcingStrategy(client=hotel_client, cache=None),
        weather=WeatherCache(client=forecast_client),
    )


@pytest.fixture
def store(assembler):
    return PackageStore(assembler=assembler)


@pytest.fixture
def service(assembler, store, session_factory):
    return PackageService(
        assembler=assembler,
        store=store,
        deduplicator=RequestDeduplicator(ttl_seconds=15),
        session_factory=session_factory,
    )


@pytest.fixture
async def client(session_factory, service, monkeypatch):
    from app.database import get_db
    from app.main import app
    from app.routers import packages as packages_router

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(packages_router, "package_service", service)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def build(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}
    return build
