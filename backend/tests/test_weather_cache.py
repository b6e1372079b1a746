from datetime import timedelta

from sqlalchemy import func, select

from app.config import settings
from app.models import WeatherSnapshot
from app.services.destination_service import load_destinations
from app.services.weather_cache import (
    REASON_OUTSIDE_HORIZON,
    REASON_UNAVAILABLE,
    WeatherCache,
    gap_reason,
)

from conftest import StubForecastClient, today


async def _info(db, dest):
    return (await load_destinations(db, [dest.id]))[dest.id]


async def test_miss_backfills_whole_window_once(db, catalog):
    client = StubForecastClient()
    cache = WeatherCache(client=client)
    srinagar = await _info(db, catalog.srinagar)

    first = await cache.get(db, srinagar, today() + timedelta(days=1))
    assert first.daily["temperature_max"] == 11.0
    assert first.snapshot_id is not None

    second = await cache.get(db, srinagar, today() + timedelta(days=2))
    assert second.daily["temperature_max"] == 12.0
    assert client.calls == 1

    stored = await db.scalar(select(func.count()).select_from(WeatherSnapshot))
    assert stored == settings.forecast_horizon_days + 1


async def test_get_many_fetches_each_destination_once(db, catalog):
    client = StubForecastClient()
    cache = WeatherCache(client=client)
    known = await load_destinations(db, [catalog.srinagar.id, catalog.gulmarg.id])
    start = today()

    found = await cache.get_many(db, [
        (known[catalog.srinagar.id], start),
        (known[catalog.srinagar.id], start + timedelta(days=1)),
        (known[catalog.gulmarg.id], start + timedelta(days=2)),
    ])
    assert client.calls == 2
    assert len(found) == 3


async def test_date_beyond_horizon_stays_missing(db, catalog):
    cache = WeatherCache(client=StubForecastClient())
    srinagar = await _info(db, catalog.srinagar)
    far = today() + timedelta(days=settings.forecast_horizon_days + 3)

    lookup = await cache.get(db, srinagar, far)
    assert lookup.daily is None
    assert lookup.snapshot_id is None
    assert gap_reason(far) == REASON_OUTSIDE_HORIZON
    assert gap_reason(today()) == REASON_UNAVAILABLE


async def test_provider_failure_degrades_to_missing(db, catalog):
    cache = WeatherCache(client=StubForecastClient(fail=True))
    srinagar = await _info(db, catalog.srinagar)

    found = await cache.get_many(db, [(srinagar, today())])
    assert found == {}


async def test_provisional_write_never_overwrites_final(db, catalog):
    cache = WeatherCache(client=StubForecastClient())
    day = today()

    final = await cache.upsert_snapshot(db, catalog.srinagar.id, day, {"daily": [{"t": 1}]}, is_final=True)
    after = await cache.upsert_snapshot(db, catalog.srinagar.id, day, {"daily": [{"t": 2}]})
    await db.commit()

    assert after.id == final.id
    assert after.is_final
    assert after.mapped == {"daily": [{"t": 1}]}


async def test_final_write_replaces_provisional(db, catalog):
    cache = WeatherCache(client=StubForecastClient())
    day = today()

    await cache.upsert_snapshot(db, catalog.srinagar.id, day, {"daily": [{"t": 1}]})
    final = await cache.upsert_snapshot(db, catalog.srinagar.id, day, {"daily": [{"t": 3}]}, is_final=True)
    await db.commit()

    rows = (await db.execute(select(WeatherSnapshot))).scalars().all()
    assert len(rows) == 1
    assert final.is_final
    assert final.mapped == {"daily": [{"t": 3}]}
    assert final.checksum


async def test_refresh_all_survives_one_failing_destination(session_factory, catalog):
    class FlakyClient(StubForecastClient):
        async def get_forecast(self, latitude, longitude):
            if round(latitude, 2) == round(float(catalog.gulmarg.center_lat), 2):
                raise RuntimeError("timeout")
            return await super().get_forecast(latitude, longitude)

    cache = WeatherCache(client=FlakyClient())
    stored = await cache.refresh_all(session_factory)

    # srinagar and pahalgam succeed
    assert stored == 2 * (settings.forecast_horizon_days + 1)
