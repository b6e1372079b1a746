"""Weather cache — per destination/date forecast snapshots with on-demand backfill."""

import asyncio
import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.weather import WeatherSnapshot
from app.services.destination_service import DestinationInfo, load_all_destinations
from app.services.forecast_client import Forecast, ForecastClient, forecast_client

logger = logging.getLogger(__name__)

REASON_OUTSIDE_HORIZON = "outside_forecast_horizon"
REASON_UNAVAILABLE = "forecast_unavailable"


@dataclass
class WeatherLookup:
    daily: dict | None = None
    snapshot_id: uuid.UUID | None = None


def daily_from_mapped(mapped: dict | None) -> dict | None:
    """The first daily entry of a stored snapshot, if any."""
    daily = (mapped or {}).get("daily") or []
    return daily[0] if daily else None


def gap_reason(day: date, today: date | None = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    if day > today + timedelta(days=settings.forecast_horizon_days) or day < today:
        return REASON_OUTSIDE_HORIZON
    return REASON_UNAVAILABLE


def _insert_for(db: AsyncSession):
    # ON CONFLICT upserts are dialect specific; sqlite backs the test suite
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


def _checksum(mapped: dict) -> str:
    return hashlib.sha256(json.dumps(mapped, sort_keys=True, default=str).encode()).hexdigest()


class WeatherCache:
    """Read-through cache over stored forecast snapshots."""

    def __init__(self, client: ForecastClient | None = None):
        self._client = client or forecast_client

    async def get(self, db: AsyncSession, destination: DestinationInfo, day: date) -> WeatherLookup:
        found = await self.get_many(db, [(destination, day)])
        return found.get((destination.id, day), WeatherLookup())

    async def get_many(
        self, db: AsyncSession, wanted: list[tuple[DestinationInfo, date]]
    ) -> dict[tuple[uuid.UUID, date], WeatherLookup]:
        """Daily weather for each (destination, date); destinations with gaps are backfilled once."""
        if not wanted:
            return {}
        keys = {(dest.id, day) for dest, day in wanted}
        found = await self._load(db, keys)

        missing = {dest.id: dest for dest, day in wanted if found.get((dest.id, day)) is None}
        if not missing:
            return found

        logger.info(f"Weather cache miss for {len(missing)} destination(s), backfilling")
        # Provider calls run concurrently, writes stay on this session
        forecasts = await asyncio.gather(
            *(self._fetch(dest) for dest in missing.values()), return_exceptions=True
        )
        for dest, forecast in zip(missing.values(), forecasts):
            if isinstance(forecast, Exception):
                logger.warning(f"Weather backfill failed for {dest.name}: {forecast}")
                continue
            await self._store_forecast(db, dest.id, forecast)

        try:
            await db.commit()
        except Exception as e:
            logger.error(f"Failed to store weather snapshots: {e}")
            await db.rollback()

        found.update(await self._load(db, {k for k in keys if found.get(k) is None}))
        return found

    async def upsert_snapshot(
        self,
        db: AsyncSession,
        destination_id: uuid.UUID,
        day: date,
        mapped: dict,
        is_final: bool = False,
    ) -> WeatherSnapshot:
        """Insert or update the (destination, date) row in one statement.

        A provisional write leaves an existing final row untouched, so concurrent
        backfills of the same window are safe to race and to retry.
        """
        if is_final:
            await db.execute(
                update(WeatherSnapshot)
                .where(
                    WeatherSnapshot.destination_id == destination_id,
                    WeatherSnapshot.snapshot_date == day,
                    WeatherSnapshot.is_final.is_(True),
                )
                .values(is_final=False)
            )

        insert = _insert_for(db)
        stmt = insert(WeatherSnapshot).values(
            id=uuid.uuid4(),
            destination_id=destination_id,
            snapshot_date=day,
            mapped=mapped,
            checksum=_checksum(mapped),
            is_final=is_final,
            fetched_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[WeatherSnapshot.destination_id, WeatherSnapshot.snapshot_date],
            set_={
                "mapped": stmt.excluded.mapped,
                "checksum": stmt.excluded.checksum,
                "is_final": stmt.excluded.is_final,
                "fetched_at": stmt.excluded.fetched_at,
                "updated_at": func.now(),
            },
            where=None if is_final else WeatherSnapshot.is_final.is_(False),
        )
        await db.execute(stmt)

        result = await db.execute(
            select(WeatherSnapshot)
            .where(
                WeatherSnapshot.destination_id == destination_id,
                WeatherSnapshot.snapshot_date == day,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def backfill(self, db: AsyncSession, destination: DestinationInfo, is_final: bool = False) -> int:
        """Fetch and store the full forecast window for one destination."""
        forecast = await self._fetch(destination)
        stored = await self._store_forecast(db, destination.id, forecast, is_final=is_final)
        await db.commit()
        return stored

    async def refresh_all(self, session_factory: async_sessionmaker) -> int:
        """Scheduled refresh of every active destination; one failure never stops the rest."""
        async with session_factory() as db:
            destinations = await load_all_destinations(db)

        async def refresh_one(dest: DestinationInfo) -> int:
            async with session_factory() as db:
                return await self.backfill(db, dest)

        results = await asyncio.gather(*(refresh_one(d) for d in destinations), return_exceptions=True)
        stored = 0
        for dest, outcome in zip(destinations, results):
            if isinstance(outcome, Exception):
                logger.error(f"Weather refresh failed for {dest.name}: {outcome}")
            else:
                stored += outcome
        logger.info(f"Weather refresh stored {stored} snapshots for {len(destinations)} destinations")
        return stored

    async def _fetch(self, destination: DestinationInfo) -> Forecast:
        if destination.latitude is None or destination.longitude is None:
            return Forecast(days=[])
        return await self._client.get_forecast(destination.latitude, destination.longitude)

    async def _store_forecast(
        self, db: AsyncSession, destination_id: uuid.UUID, forecast: Forecast, is_final: bool = False
    ) -> int:
        for day in forecast.days:
            await self.upsert_snapshot(db, destination_id, day.day, day.mapped(), is_final=is_final)
        return len(forecast.days)

    async def _load(
        self, db: AsyncSession, keys: set[tuple[uuid.UUID, date]]
    ) -> dict[tuple[uuid.UUID, date], WeatherLookup]:
        if not keys:
            return {}
        result = await db.execute(
            select(WeatherSnapshot).where(
                WeatherSnapshot.destination_id.in_(list({k[0] for k in keys})),
                WeatherSnapshot.snapshot_date.in_(list({k[1] for k in keys})),
            )
        )
        found = {}
        for row in result.scalars().all():
            key = (row.destination_id, row.snapshot_date)
            daily = daily_from_mapped(row.mapped)
            if key in keys and daily is not None:
                found[key] = WeatherLookup(daily=daily, snapshot_id=row.id)
        return found


weather_cache = WeatherCache()
