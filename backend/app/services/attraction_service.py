"""Attraction curator — picks top purchasable attractions per destination and prices activities."""

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.destination import Poi
from app.schemas.package import ActivityItem, OptionalAttraction

logger = logging.getLogger(__name__)

AUTO_INCLUDE_PER_DESTINATION = 3


def activity_cost(pricing_type: str | None, base_price: float | None, people: int) -> float:
    """free costs nothing, per_person scales with party size, anything else is a flat fee."""
    price = float(base_price or 0)
    if pricing_type == "free":
        return 0.0
    if pricing_type == "per_person":
        return round(price * people, 2)
    return round(price, 2)


def to_activity(poi: Poi, people: int) -> ActivityItem:
    pricing = poi.pricing
    pricing_type = pricing.pricing_type if pricing else None
    base_price = float(pricing.base_price) if pricing and pricing.base_price is not None else None
    return ActivityItem(
        poi_id=poi.id,
        name=poi.name,
        pricing_type=pricing_type,
        base_price=base_price,
        cost=activity_cost(pricing_type, base_price, people),
        metadata=dict(pricing.details or {}) if pricing else {},
    )


def _matches_interests(poi: Poi, interests: list[str]) -> bool:
    if not interests:
        return True
    category = (poi.category_name or "").lower()
    return any(i.lower() in category for i in interests)


@dataclass
class CuratedAttractions:
    included: dict[uuid.UUID, list[ActivityItem]] = field(default_factory=dict)
    optional: list[OptionalAttraction] = field(default_factory=list)


class AttractionCurator:
    async def _purchasable(self, db: AsyncSession, destination_ids: list[uuid.UUID]) -> list[Poi]:
        result = await db.execute(
            select(Poi)
            .where(Poi.destination_id.in_(destination_ids))
            .options(selectinload(Poi.pricing))
        )
        pois = [p for p in result.scalars().all() if p.pricing and p.pricing.is_purchasable]
        pois.sort(key=lambda p: float(p.average_rating or 0), reverse=True)
        return pois

    async def curate(
        self,
        db: AsyncSession,
        destination_ids: list[uuid.UUID],
        people: int,
        interests: list[str] | None = None,
    ) -> CuratedAttractions:
        """Top three purchasable attractions per destination, the rest offered as optional.

        When interests are given, only attractions whose category matches one
        of them are auto-included.
        """
        curated = CuratedAttractions(included={d: [] for d in destination_ids})
        if not destination_ids:
            return curated

        for poi in await self._purchasable(db, destination_ids):
            picked = curated.included.setdefault(poi.destination_id, [])
            if len(picked) < AUTO_INCLUDE_PER_DESTINATION and _matches_interests(poi, interests or []):
                picked.append(to_activity(poi, people))
            else:
                curated.optional.append(OptionalAttraction(
                    poi_id=poi.id,
                    name=poi.name,
                    price=float(poi.pricing.base_price) if poi.pricing.base_price is not None else None,
                ))
        logger.debug(
            f"Curated {sum(len(v) for v in curated.included.values())} attractions, "
            f"{len(curated.optional)} optional"
        )
        return curated

    async def resolve_activities(
        self, db: AsyncSession, poi_ids: list[uuid.UUID], people: int
    ) -> list[ActivityItem]:
        """Activities for explicit attraction ids; unknown ids are skipped."""
        if not poi_ids:
            return []
        result = await db.execute(
            select(Poi).where(Poi.id.in_(poi_ids)).options(selectinload(Poi.pricing))
        )
        by_id = {p.id: p for p in result.scalars().all()}
        return [to_activity(by_id[pid], people) for pid in dict.fromkeys(poi_ids) if pid in by_id]


attraction_curator = AttractionCurator()
