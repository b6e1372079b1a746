"""Hotel sourcing — finds and prices lodging near a destination with a relaxing search ladder."""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date

from app.config import settings
from app.services.amadeus_client import AmadeusClient, HotelListing, HotelOffer, amadeus_client
from app.services.cache_service import CacheService, cache_service

logger = logging.getLogger(__name__)

# Star ratings requested from the provider per tier
TIER_RATINGS = {
    "budget": ["2", "3"],
    "optimal": ["4"],
    "premium": ["5"],
}

TIER_BOARD_TYPE = {
    "budget": "ROOM_ONLY",
    "optimal": "BREAKFAST",
    "premium": "BREAKFAST",
}


@dataclass(frozen=True)
class SearchStage:
    """One rung of the search ladder.

    A stage runs only while fewer than ``run_below`` candidates have been
    accumulated; ``None`` means it always runs.
    """
    name: str
    radius_km: int
    use_ratings: bool
    run_below: int | None = None


def default_ladder() -> list[SearchStage]:
    return [
        SearchStage("narrow_rated", settings.hotel_narrow_radius_km, True),
        SearchStage(
            "expanded_rated", settings.hotel_expanded_radius_km, True,
            run_below=settings.hotel_min_candidates_narrow,
        ),
        SearchStage(
            "expanded_unrated", settings.hotel_expanded_radius_km, False,
            run_below=settings.hotel_min_candidates_expanded,
        ),
    ]


@dataclass
class LodgingResult:
    selected: HotelOffer | None = None
    offers: list[HotelOffer] = field(default_factory=list)

    @property
    def cost(self) -> float:
        return self.selected.price if self.selected else 0.0


def build_price_range(tier: str, cap: float) -> str | None:
    """Provider price range: ``0-cap`` for budget/optimal, ``cap`` (a floor) for premium."""
    rounded = max(0, round(cap or 0))
    if rounded <= 0:
        return None
    if tier == "premium":
        return str(rounded)
    return f"0-{rounded}"


def pick_cheapest(offers: list[HotelOffer]) -> HotelOffer | None:
    priced = [o for o in offers if o.price and o.price > 0]
    if not priced:
        return None
    return min(priced, key=lambda o: o.price)


class HotelSourcingStrategy:
    """Runs the search ladder, shortlists by distance and prices the shortlist in batches."""

    def __init__(
        self,
        client: AmadeusClient | None = None,
        cache: CacheService | None = None,
        ladder: list[SearchStage] | None = None,
        shortlist_size: int | None = None,
        batch_size: int | None = None,
    ):
        self._client = client or amadeus_client
        self._cache = cache
        self._ladder = ladder or default_ladder()
        self._shortlist_size = shortlist_size or settings.hotel_shortlist_size
        self._batch_size = batch_size or settings.hotel_offer_batch_size

    async def find_lodging(
        self,
        latitude: float | None,
        longitude: float | None,
        tier: str,
        check_in: date,
        check_out: date,
        adults: int,
        accommodation_cap: float = 0.0,
        currency: str = "INR",
    ) -> LodgingResult:
        if latitude is None or longitude is None:
            return LodgingResult()

        candidates = await self.collect_candidates(latitude, longitude, tier)
        shortlist = self.shortlist(candidates)
        if not shortlist:
            logger.info(f"No hotels near ({latitude}, {longitude}) for tier={tier}")
            return LodgingResult()

        offers = await self.price_shortlist(
            [h.hotel_id for h in shortlist],
            adults=adults,
            check_in=check_in,
            check_out=check_out,
            price_range=build_price_range(tier, accommodation_cap),
            board_type=TIER_BOARD_TYPE.get(tier, "BREAKFAST"),
            currency=currency,
        )
        return LodgingResult(selected=pick_cheapest(offers), offers=offers)

    async def collect_candidates(self, latitude: float, longitude: float, tier: str) -> list[HotelListing]:
        """Run ladder stages left to right, accumulating candidates."""
        ratings = TIER_RATINGS.get(tier, [])
        accumulated: list[HotelListing] = []
        for stage in self._ladder:
            if stage.run_below is not None and len(accumulated) >= stage.run_below:
                continue
            found = await self._listings(
                latitude, longitude, stage.radius_km, ratings if stage.use_ratings else []
            )
            logger.debug(f"Hotel stage {stage.name}: {len(found)} found, {len(accumulated)} before")
            accumulated.extend(found)
        return accumulated

    def shortlist(self, candidates: list[HotelListing]) -> list[HotelListing]:
        """Dedupe by hotel id, closest first, bounded."""
        unique: dict[str, HotelListing] = {}
        for hotel in candidates:
            unique.setdefault(hotel.hotel_id, hotel)
        ordered = sorted(unique.values(), key=lambda h: h.distance_km or 0.0)
        return ordered[: self._shortlist_size]

    async def price_shortlist(
        self,
        hotel_ids: list[str],
        adults: int,
        check_in: date,
        check_out: date,
        price_range: str | None,
        board_type: str | None,
        currency: str,
    ) -> list[HotelOffer]:
        """Query offers batch by batch; stop at the first batch returning anything."""
        for start in range(0, len(hotel_ids), self._batch_size):
            batch = hotel_ids[start:start + self._batch_size]
            offers = await self._client.get_hotel_offers(
                hotel_ids=batch,
                adults=adults,
                check_in=check_in,
                check_out=check_out,
                price_range=price_range,
                board_type=board_type,
                currency=currency,
            )
            if offers:
                logger.info(f"Found {len(offers)} hotel offers in batch starting at {start}")
                return offers
        return []

    async def _listings(
        self, latitude: float, longitude: float, radius_km: int, ratings: list[str]
    ) -> list[HotelListing]:
        if self._cache is not None:
            cached = await self._cache.get_hotel_listings(latitude, longitude, radius_km, ratings)
            if cached is not None:
                return [HotelListing(**row) for row in cached]

        found = await self._client.search_hotels_by_geocode(
            latitude=latitude, longitude=longitude, radius_km=radius_km, ratings=ratings
        )
        if self._cache is not None and found:
            await self._cache.set_hotel_listings(
                latitude, longitude, radius_km, ratings, [asdict(h) for h in found]
            )
        return found


hotel_sourcing = HotelSourcingStrategy(cache=cache_service)
