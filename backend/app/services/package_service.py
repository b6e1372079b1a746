"""Package service — generation with dedup, access checks and the booking flow."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import async_session_factory
from app.models.package import Package
from app.models.user import User
from app.schemas.package import (
    BookingHistoryItem,
    BookingResponse,
    BookPackageRequest,
    GeneratePackageRequest,
    PackageResult,
    UpdatePackageRequest,
)
from app.services import booking_workflow
from app.services.booking_workflow import BOOKED, OUTCOME_CONFLICT
from app.services.errors import PackageAccessDeniedError
from app.services.itinerary_assembler import GenerationParams, ItineraryAssembler, itinerary_assembler
from app.services.package_store import PackageStore, package_store
from app.services.profile_store import ProfileStore, profile_store
from app.services.request_dedup import RequestDeduplicator

logger = logging.getLogger(__name__)


def can_view(pkg: Package | PackageResult, user_id: uuid.UUID | None) -> bool:
    owner = pkg.owner_id if isinstance(pkg, PackageResult) else pkg.user_id
    return pkg.is_public or (owner is not None and owner == user_id)


class PackageService:
    def __init__(
        self,
        assembler: ItineraryAssembler | None = None,
        store: PackageStore | None = None,
        profiles: ProfileStore | None = None,
        deduplicator: RequestDeduplicator | None = None,
        session_factory: async_sessionmaker | None = None,
    ):
        self._assembler = assembler or itinerary_assembler
        self._store = store or package_store
        self._profiles = profiles or profile_store
        self._dedup = deduplicator or RequestDeduplicator()
        self._session_factory = session_factory or async_session_factory

    async def generate(self, request: GeneratePackageRequest, user: User | None = None) -> PackageResult:
        """Identical requests from the same caller within the dedup window share one stored package.

        The caller is part of the key so a package owned by one user is never handed to another.
        """
        params = GenerationParams.from_request(request)
        owner_id = user.id if user else None
        key = f"{params.fingerprint()}:{owner_id or 'anonymous'}"
        return await self._dedup.run(key, lambda: self._generate(params, owner_id))

    async def _generate(self, params: GenerationParams, owner_id: uuid.UUID | None) -> PackageResult:
        # runs detached from any request, so it owns its session
        async with self._session_factory() as db:
            result = await self._assembler.assemble(db, params)
            try:
                package_id = await self._store.persist(db, result, params, owner_id=owner_id)
            except Exception as e:
                logger.error(f"Failed to persist generated package: {e}")
                await db.rollback()
                return result
        return result.model_copy(update={"package_id": package_id, "owner_id": owner_id})

    async def get(self, db: AsyncSession, package_id: uuid.UUID, user: User | None = None) -> PackageResult:
        result = await self._store.read(db, package_id)
        if not can_view(result, user.id if user else None):
            raise PackageAccessDeniedError("This package is private")
        return result

    async def update(
        self, db: AsyncSession, package_id: uuid.UUID, changes: UpdatePackageRequest, user: User | None = None
    ) -> PackageResult:
        return await self._store.update(db, package_id, changes, requester_id=user.id if user else None)

    async def clone(
        self, db: AsyncSession, package_id: uuid.UUID, start_date, user: User | None = None
    ) -> PackageResult:
        return await self._store.clone(db, package_id, start_date, requester_id=user.id if user else None)

    async def book(
        self,
        db: AsyncSession,
        package_id: uuid.UUID,
        user: User | None = None,
        overrides: BookPackageRequest | None = None,
    ) -> BookingResponse:
        pkg = await self._store.load(db, package_id)
        caller_id = user.id if user else None
        profile = await self._profiles.get(db, caller_id) if caller_id else None
        decision = booking_workflow.evaluate(caller_id, profile, pkg.user_id, pkg.booking_status)

        has_overrides = overrides is not None and (overrides.cab_id or overrides.day_configurations)
        if has_overrides and caller_id and decision.outcome != OUTCOME_CONFLICT and pkg.booking_status != BOOKED:
            await self._store.update(
                db,
                package_id,
                UpdatePackageRequest(cab_id=overrides.cab_id, day_configurations=overrides.day_configurations),
                requester_id=caller_id,
            )

        pkg = await self._store.apply_booking(db, package_id, decision, caller_id)
        return BookingResponse(
            package_id=pkg.id,
            booking_status=pkg.booking_status,
            outcome=decision.outcome,
            message=decision.message,
        )

    async def history(
        self, db: AsyncSession, user: User, limit: int | None = None
    ) -> list[BookingHistoryItem]:
        return await self._store.history(db, user.id, limit)


package_service = PackageService()
