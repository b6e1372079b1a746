"""Restaurant suggestions per destination, aligned with the package tier."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.destination import Restaurant
from app.schemas.package import RestaurantSuggestion

TIER_PRICE_RANGE = {
    "budget": "budget",
    "optimal": "mid_range",
    "premium": "premium",
}

SUGGESTIONS_PER_DESTINATION = 3


class RestaurantDirectory:
    async def top_for_destinations(
        self, db: AsyncSession, destination_ids: list[uuid.UUID], tier: str
    ) -> dict[uuid.UUID, list[RestaurantSuggestion]]:
        """Up to three suggestions per destination, best rated and most reviewed first."""
        out: dict[uuid.UUID, list[RestaurantSuggestion]] = {d: [] for d in destination_ids}
        if not destination_ids:
            return out

        result = await db.execute(
            select(Restaurant)
            .where(
                Restaurant.destination_id.in_(destination_ids),
                Restaurant.price_range == TIER_PRICE_RANGE.get(tier, "mid_range"),
                Restaurant.is_active.is_(True),
            )
            .order_by(Restaurant.average_rating.desc(), Restaurant.total_ratings.desc())
        )
        for r in result.scalars().all():
            bucket = out.setdefault(r.destination_id, [])
            if len(bucket) >= SUGGESTIONS_PER_DESTINATION:
                continue
            bucket.append(RestaurantSuggestion(
                id=r.id,
                name=r.name,
                price_range=r.price_range,
                average_rating=float(r.average_rating) if r.average_rating is not None else None,
                total_ratings=r.total_ratings,
                veg_non_veg=r.veg_non_veg,
                cuisine_types=list(r.cuisine_types or []),
                special_delicacies=list(r.special_delicacies or []),
                description=r.description,
            ))
        return out


restaurant_directory = RestaurantDirectory()
