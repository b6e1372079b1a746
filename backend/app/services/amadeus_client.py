"""Amadeus API client — adapter for hotel listing and hotel offer pricing with OAuth2 and rate limiting."""

import asyncio
import hashlib
import logging
import math
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

# Hotel name fragments for mocking
MOCK_HOTEL_NAMES = [
    "Lake View Residency", "Pine Crest Resort", "Heritage Houseboat", "Snow Peak Inn",
    "Valley Retreat", "Chinar Palace", "Meadow Cottages", "Royal Orchard Hotel",
    "Riverside Lodge", "Grand Mughal", "Alpine Suites", "Saffron Stay",
]


@dataclass
class HotelListing:
    """Hotel found near a location (no price yet)."""
    hotel_id: str
    name: str
    distance_km: float | None
    latitude: float | None
    longitude: float | None
    country_code: str | None = None


@dataclass
class HotelOffer:
    """Best priced offer for one hotel and stay."""
    hotel_id: str
    name: str | None
    price: float
    currency: str | None
    board_type: str | None
    latitude: float | None
    longitude: float | None
    offer_id: str | None = None


class AmadeusClient:
    """Adapter for Amadeus Self-Service hotel APIs."""

    def __init__(self):
        self._token: str | None = None
        self._token_expires: datetime | None = None
        self._semaphore = asyncio.Semaphore(10)  # 10 req/s rate limit
        self._client: httpx.AsyncClient | None = None
        self._use_mock = not settings.amadeus_client_id

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=settings.amadeus_base_url,
                timeout=30.0,
            )
        return self._client

    async def _ensure_token(self):
        """Get or refresh OAuth2 token."""
        if self._token and self._token_expires and datetime.now(timezone.utc) < self._token_expires:
            return

        client = await self._get_client()
        for attempt in range(settings.amadeus_max_attempts):
            try:
                resp = await client.post(
                    "/v1/security/oauth2/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": settings.amadeus_client_id,
                        "client_secret": settings.amadeus_client_secret,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                resp.raise_for_status()
                data = resp.json()
                self._token = data["access_token"]
                self._token_expires = datetime.now(timezone.utc) + timedelta(
                    seconds=data.get("expires_in", 1799) - 60
                )
                logger.info("Amadeus token refreshed")
                return
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < settings.amadeus_max_attempts - 1:
                    await asyncio.sleep(settings.amadeus_retry_delay_seconds)
                    continue
                raise
            except httpx.RequestError:
                if attempt < settings.amadeus_max_attempts - 1:
                    await asyncio.sleep(settings.amadeus_retry_delay_seconds)
                    continue
                raise

    async def _get(self, path: str, params: dict) -> dict | None:
        """Authenticated GET with bounded 429 retry. Returns None on failure."""
        async with self._semaphore:
            await self._ensure_token()
            client = await self._get_client()
            for attempt in range(settings.amadeus_max_attempts):
                try:
                    resp = await client.get(
                        path,
                        params=params,
                        headers={"Authorization": f"Bearer {self._token}"},
                    )
                    if resp.status_code == 429:
                        logger.warning(f"Amadeus {path} rate limited (attempt {attempt + 1})")
                        if attempt < settings.amadeus_max_attempts - 1:
                            await asyncio.sleep(settings.amadeus_retry_delay_seconds)
                        continue
                    resp.raise_for_status()
                    return resp.json()
                except httpx.HTTPStatusError as e:
                    logger.error(f"Amadeus {path} error: {e.response.status_code}")
                    return None
                except httpx.RequestError as e:
                    logger.error(f"Amadeus {path} request error: {e}")
                    if attempt == settings.amadeus_max_attempts - 1:
                        return None
        return None

    async def search_hotels_by_geocode(
        self,
        latitude: float,
        longitude: float,
        radius_km: int = 5,
        ratings: list[str] | None = None,
    ) -> list[HotelListing]:
        """List hotels within a radius of a point, optionally filtered by star ratings."""
        if self._use_mock:
            return self._generate_mock_listings(latitude, longitude, radius_km, ratings or [])

        params = {
            "latitude": latitude,
            "longitude": longitude,
            "radius": radius_km,
            "radiusUnit": "KM",
            "hotelSource": "ALL",
        }
        if ratings:
            params["ratings"] = ",".join(ratings)

        try:
            data = await self._get("/v1/reference-data/locations/hotels/by-geocode", params)
        except Exception as e:
            logger.error(f"Amadeus by-geocode failed: {e}")
            return []
        if not data:
            return []
        return [self._parse_listing(h) for h in data.get("data", []) if h.get("hotelId")]

    async def get_hotel_offers(
        self,
        hotel_ids: list[str],
        adults: int,
        check_in: date,
        check_out: date,
        price_range: str | None = None,
        board_type: str | None = None,
        currency: str = "INR",
    ) -> list[HotelOffer]:
        """Best-rate offers for a batch of hotels."""
        if not hotel_ids:
            return []
        if self._use_mock:
            return self._generate_mock_offers(hotel_ids, check_in, price_range, board_type, currency)

        params = {
            "hotelIds": ",".join(hotel_ids),
            "adults": adults,
            "checkInDate": check_in.isoformat(),
            "checkOutDate": check_out.isoformat(),
            "roomQuantity": 1,
            "currency": currency,
            "includeClosed": "false",
            "bestRateOnly": "true",
            "lang": "EN",
        }
        if price_range:
            params["priceRange"] = price_range
        if board_type:
            params["boardType"] = board_type

        try:
            data = await self._get("/v3/shopping/hotel-offers", params)
        except Exception as e:
            logger.error(f"Amadeus hotel-offers failed: {e}")
            return []
        if not data:
            return []
        offers = [self._parse_offer(o) for o in data.get("data", [])]
        return [o for o in offers if o is not None]

    @staticmethod
    def _parse_listing(raw: dict) -> HotelListing:
        geo = raw.get("geoCode") or {}
        distance = (raw.get("distance") or {}).get("value")
        return HotelListing(
            hotel_id=raw["hotelId"],
            name=raw.get("name", raw["hotelId"]),
            distance_km=float(distance) if distance is not None else None,
            latitude=geo.get("latitude"),
            longitude=geo.get("longitude"),
            country_code=(raw.get("address") or {}).get("countryCode"),
        )

    @staticmethod
    def _parse_offer(raw: dict) -> HotelOffer | None:
        """Parse one hotel-offers entry; the first offer carries the best rate."""
        hotel = raw.get("hotel") or {}
        offers = raw.get("offers") or []
        if not hotel.get("hotelId") or not offers:
            return None
        first = offers[0]
        price_info = first.get("price") or {}
        try:
            price = float(price_info.get("total") or price_info.get("base") or 0)
        except (TypeError, ValueError):
            price = 0.0
        return HotelOffer(
            hotel_id=hotel["hotelId"],
            name=hotel.get("name"),
            price=price,
            currency=price_info.get("currency"),
            board_type=first.get("boardType"),
            latitude=hotel.get("latitude"),
            longitude=hotel.get("longitude"),
            offer_id=first.get("id"),
        )

    # --- Mock data generation for demo mode ---

    def _generate_mock_listings(
        self, latitude: float, longitude: float, radius_km: int, ratings: list[str]
    ) -> list[HotelListing]:
        """Deterministic hotel listings around a point."""
        seed_str = f"{latitude:.4f}{longitude:.4f}{radius_km}{','.join(ratings)}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        listings = []
        for i in range(rng.randint(2, 8)):
            distance = round(rng.uniform(0.3, float(radius_km)), 2)
            bearing = rng.uniform(0, 2 * math.pi)
            listings.append(HotelListing(
                hotel_id=f"MK{seed % 10000:04d}{i:02d}",
                name=rng.choice(MOCK_HOTEL_NAMES),
                distance_km=distance,
                latitude=round(latitude + (distance / 111.0) * math.cos(bearing), 6),
                longitude=round(longitude + (distance / 111.0) * math.sin(bearing), 6),
                country_code="IN",
            ))
        return listings

    def _generate_mock_offers(
        self,
        hotel_ids: list[str],
        check_in: date,
        price_range: str | None,
        board_type: str | None,
        currency: str,
    ) -> list[HotelOffer]:
        """Deterministic offers honoring the requested price range."""
        low, high = 1500.0, 9000.0
        if price_range:
            if "-" in price_range:
                low_s, high_s = price_range.split("-", 1)
                low, high = float(low_s), max(float(high_s), float(low_s) + 1)
            else:
                low = float(price_range)
                high = low * 2

        offers = []
        for hotel_id in hotel_ids:
            seed = int(hashlib.md5(f"{hotel_id}{check_in.isoformat()}".encode()).hexdigest()[:8], 16)
            rng = random.Random(seed)
            if rng.random() < 0.25:
                continue  # sold out
            offers.append(HotelOffer(
                hotel_id=hotel_id,
                name=rng.choice(MOCK_HOTEL_NAMES),
                price=round(rng.uniform(max(low, 1.0), high), 2),
                currency=currency,
                board_type=board_type,
                latitude=None,
                longitude=None,
                offer_id=f"OF{seed % 100000:05d}",
            ))
        return offers

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


amadeus_client = AmadeusClient()
