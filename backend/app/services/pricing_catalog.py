"""Pricing catalog — per-destination bucket rates and cab inventory."""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.destination import CabInventory, DestinationPricingBucket
from app.schemas.package import CabOption

logger = logging.getLogger(__name__)

CAB_CLASS_ORDER = {"hatchback": 0, "sedan": 1, "suv": 2, "tempo": 3}


@dataclass(frozen=True)
class BucketRates:
    accommodation: float = 0.0
    transport: float = 0.0


ZERO_RATES = BucketRates()


def suggest_cab_type(people: int) -> str:
    if people >= 7:
        return "tempo"
    if people >= 4:
        return "suv"
    return "sedan"


def allowed_cab_types(people: int) -> list[str]:
    if people >= 7:
        return ["tempo", "suv", "sedan"]
    if people >= 4:
        return ["suv", "sedan"]
    return ["sedan"]


def rank_cabs(cabs: list[CabInventory], tier: str) -> list[CabInventory]:
    """Budget: cheapest per km. Optimal: cheapest, then newest. Premium: newest, then cheapest."""
    if tier == "premium":
        return sorted(cabs, key=lambda c: (-c.model_year, float(c.base_price_per_km)))
    if tier == "optimal":
        return sorted(cabs, key=lambda c: (float(c.base_price_per_km), -c.model_year))
    return sorted(cabs, key=lambda c: float(c.base_price_per_km))


def to_cab_option(cab: CabInventory) -> CabOption:
    return CabOption(
        id=cab.id,
        type=cab.cab_type,
        make=cab.make,
        model=cab.model,
        capacity=cab.capacity,
        price_per_day=float(cab.per_day_charge) if cab.per_day_charge is not None else None,
        price_per_km=float(cab.base_price_per_km),
    )


class PricingCatalog:
    """Read-only lookups over pricing buckets and the cab inventory."""

    async def get_rates(
        self, db: AsyncSession, destination_ids: list[uuid.UUID], tier: str
    ) -> dict[uuid.UUID, BucketRates]:
        """Bucket rates per destination; destinations without a row are absent."""
        if not destination_ids:
            return {}
        result = await db.execute(
            select(DestinationPricingBucket).where(
                DestinationPricingBucket.bucket_type == tier,
                DestinationPricingBucket.destination_id.in_(destination_ids),
            )
        )
        return {
            row.destination_id: BucketRates(
                accommodation=float(row.accommodation_price or 0),
                transport=float(row.transport_price or 0),
            )
            for row in result.scalars().all()
        }

    async def _available(self, db: AsyncSession, people: int) -> list[CabInventory]:
        result = await db.execute(
            select(CabInventory).where(
                CabInventory.capacity >= people,
                CabInventory.is_available.is_(True),
            )
        )
        return list(result.scalars().all())

    async def select_cab(self, db: AsyncSession, tier: str, people: int) -> CabInventory | None:
        allowed = allowed_cab_types(people)
        candidates = [c for c in await self._available(db, people) if c.cab_type in allowed]
        if not candidates:
            logger.info(f"No available cab for tier={tier} people={people}")
            return None
        return rank_cabs(candidates, tier)[0]

    async def available_cabs(self, db: AsyncSession, people: int) -> list[CabOption]:
        """Cabs a user may switch to, ordered by class then day charge."""
        cabs = await self._available(db, people)
        cabs.sort(key=lambda c: (CAB_CLASS_ORDER.get(c.cab_type, 99), float(c.per_day_charge or 0)))
        return [to_cab_option(c) for c in cabs]

    async def get_cab(self, db: AsyncSession, cab_id: uuid.UUID) -> CabInventory | None:
        result = await db.execute(select(CabInventory).where(CabInventory.id == cab_id))
        return result.scalar_one_or_none()


pricing_catalog = PricingCatalog()
