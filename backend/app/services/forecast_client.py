"""Tomorrow.io forecast client — multi-day hourly + daily forecast by coordinates, with mock fallback."""

import hashlib
import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

DAILY_FIELDS = {
    "temperatureMin": "temperature_min",
    "temperatureMax": "temperature_max",
    "temperatureAvg": "temperature_avg",
    "precipitationProbabilityAvg": "precipitation_probability",
    "humidityAvg": "humidity",
    "windSpeedAvg": "wind_speed",
    "uvIndexMax": "uv_index_max",
    "weatherCodeMax": "weather_code",
    "sunriseTime": "sunrise",
    "sunsetTime": "sunset",
}

HOURLY_FIELDS = {
    "temperature": "temperature",
    "precipitationProbability": "precipitation_probability",
    "humidity": "humidity",
    "windSpeed": "wind_speed",
    "weatherCode": "weather_code",
}


@dataclass
class ForecastDay:
    """One calendar day (UTC) of a forecast."""
    day: date
    daily: dict
    hourly: list[dict] = field(default_factory=list)

    def mapped(self) -> dict:
        return {"daily": [self.daily], "hourly": self.hourly}


@dataclass
class Forecast:
    days: list[ForecastDay]


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)


def map_timelines(timelines: dict) -> Forecast:
    """Group Tomorrow.io hourly/daily timelines into per-day entries."""
    hourly_by_day: dict[date, list[dict]] = {}
    for point in timelines.get("hourly") or []:
        ts = _parse_time(point["time"])
        values = point.get("values") or {}
        row = {"time": ts.isoformat()}
        row.update({ours: values.get(theirs) for theirs, ours in HOURLY_FIELDS.items()})
        hourly_by_day.setdefault(ts.date(), []).append(row)

    days = []
    for point in timelines.get("daily") or []:
        day = _parse_time(point["time"]).date()
        values = point.get("values") or {}
        daily = {"date": day.isoformat()}
        daily.update({ours: values.get(theirs) for theirs, ours in DAILY_FIELDS.items()})
        days.append(ForecastDay(day=day, daily=daily, hourly=hourly_by_day.get(day, [])))
    return Forecast(days=days)


class ForecastClient:
    """Adapter for the Tomorrow.io forecast API."""

    def __init__(self):
        self._client: httpx.AsyncClient | None = None
        self._use_mock = not settings.tomorrow_api_key

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=settings.tomorrow_base_url,
                timeout=15.0,
            )
        return self._client

    async def get_forecast(self, latitude: float, longitude: float) -> Forecast:
        """Fetch the full forecast window for a location."""
        if self._use_mock:
            return self._generate_mock_forecast(latitude, longitude)

        try:
            client = await self._get_client()
            resp = await client.get(
                "/weather/forecast",
                params={
                    "location": f"{latitude},{longitude}",
                    "timesteps": "1h,1d",
                    "apikey": settings.tomorrow_api_key,
                },
            )
            resp.raise_for_status()
            return map_timelines(resp.json().get("timelines") or {})
        except httpx.HTTPStatusError as e:
            logger.error(f"Tomorrow.io forecast error: {e.response.status_code}")
        except httpx.RequestError as e:
            logger.error(f"Tomorrow.io request error: {e}")
        return Forecast(days=[])

    def _generate_mock_forecast(self, latitude: float, longitude: float) -> Forecast:
        """Deterministic forecast covering the provider horizon starting today (UTC)."""
        today = datetime.now(timezone.utc).date()
        seed = int(hashlib.md5(f"{latitude:.3f}{longitude:.3f}{today}".encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        days = []
        for offset in range(settings.forecast_horizon_days + 1):
            day = today + timedelta(days=offset)
            t_min = round(rng.uniform(-4, 12), 1)
            t_max = round(t_min + rng.uniform(5, 14), 1)
            hourly = [
                {
                    "time": datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc).isoformat(),
                    "temperature": round(rng.uniform(t_min, t_max), 1),
                    "precipitation_probability": rng.choice([0, 0, 5, 10, 20, 40]),
                    "humidity": rng.randint(35, 90),
                    "wind_speed": round(rng.uniform(0.5, 8.0), 1),
                    "weather_code": rng.choice([1000, 1100, 1101, 1001, 4000]),
                }
                for hour in range(0, 24, 3)
            ]
            daily = {
                "date": day.isoformat(),
                "temperature_min": t_min,
                "temperature_max": t_max,
                "temperature_avg": round((t_min + t_max) / 2, 1),
                "precipitation_probability": rng.choice([0, 10, 20, 35, 60]),
                "humidity": rng.randint(40, 85),
                "wind_speed": round(rng.uniform(1.0, 6.0), 1),
                "uv_index_max": rng.randint(1, 9),
                "weather_code": rng.choice([1000, 1100, 1101, 1001, 4000]),
                "sunrise": None,
                "sunset": None,
            }
            days.append(ForecastDay(day=day, daily=daily, hourly=hourly))
        return Forecast(days=days)

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


forecast_client = ForecastClient()
