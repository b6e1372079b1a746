"""Route matrix — precomputed distance/duration between consecutive destinations."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.destination import DestinationDistance
from app.schemas.package import LegPlan


class RouteMatrix:
    async def build_legs(self, db: AsyncSession, ordered: list[uuid.UUID]) -> list[LegPlan]:
        """One leg per consecutive pair; missing matrix entries leave distance/duration empty."""
        if len(ordered) < 2:
            return []

        result = await db.execute(
            select(DestinationDistance).where(
                DestinationDistance.origin_id.in_(ordered),
                DestinationDistance.destination_id.in_(ordered),
            )
        )
        matrix = {(r.origin_id, r.destination_id): r for r in result.scalars().all()}

        legs = []
        for origin, dest in zip(ordered, ordered[1:]):
            row = matrix.get((origin, dest))
            legs.append(LegPlan(
                origin_id=origin,
                destination_id=dest,
                distance_km=float(row.distance_km) if row and row.distance_km is not None else None,
                duration_minutes=row.duration_minutes if row else None,
            ))
        return legs


route_matrix = RouteMatrix()
