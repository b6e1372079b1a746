"""Destination lookup and itinerary ordering."""

import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.destination import Destination


@dataclass(frozen=True)
class DestinationInfo:
    """Detached destination values used throughout assembly."""
    id: uuid.UUID
    name: str
    slug: str
    latitude: float | None
    longitude: float | None
    altitude_m: float | None
    images: list = field(default_factory=list)


def _to_info(row: Destination) -> DestinationInfo:
    return DestinationInfo(
        id=row.id,
        name=row.name,
        slug=row.slug,
        latitude=float(row.center_lat) if row.center_lat is not None else None,
        longitude=float(row.center_lng) if row.center_lng is not None else None,
        altitude_m=float(row.altitude_m) if row.altitude_m is not None else None,
        images=list(row.images or []),
    )


async def load_destinations(db: AsyncSession, ids) -> dict[uuid.UUID, DestinationInfo]:
    ids = list(ids)
    if not ids:
        return {}
    result = await db.execute(select(Destination).where(Destination.id.in_(ids)))
    return {row.id: _to_info(row) for row in result.scalars().all()}


async def load_all_destinations(db: AsyncSession) -> list[DestinationInfo]:
    result = await db.execute(select(Destination).where(Destination.is_active.is_(True)))
    return [_to_info(row) for row in result.scalars().all()]


def order_destinations(
    requested: list[uuid.UUID],
    known: dict[uuid.UUID, DestinationInfo],
    hub_slug: str | None = None,
) -> list[uuid.UUID]:
    """Keep caller order, drop unknown ids and pin the hub destination first."""
    hub_slug = (hub_slug or settings.hub_destination_slug).lower()
    ordered = [d for d in requested if d in known]
    hub = next((d for d in ordered if known[d].slug.lower() == hub_slug), None)
    if hub is not None and ordered[0] != hub:
        ordered = [hub] + [d for d in ordered if d != hub]
    return ordered
