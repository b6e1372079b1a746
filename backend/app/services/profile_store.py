"""Profile lookup — verification and KYC state used by the booking workflow."""

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


@dataclass(frozen=True)
class UserProfile:
    user_id: uuid.UUID
    phone: str | None
    verification_status: str | None
    kyc_status: str | None

    @property
    def phone_verified(self) -> bool:
        return bool(self.phone) and self.verification_status == "verified"

    @property
    def kyc_verified(self) -> bool:
        return self.kyc_status == "verified"


class ProfileStore:
    async def get(self, db: AsyncSession, user_id: uuid.UUID) -> UserProfile | None:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return UserProfile(
            user_id=user.id,
            phone=user.phone,
            verification_status=user.verification_status,
            kyc_status=user.kyc_status,
        )


profile_store = ProfileStore()
