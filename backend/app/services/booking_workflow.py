"""Booking workflow — decides the next booking status from caller, profile and ownership."""

import uuid
from dataclasses import dataclass

from app.services.profile_store import UserProfile

GENERATED = "generated"
AWAITING_AUTH = "awaiting_auth"
AWAITING_VERIFICATION = "awaiting_verification"
PENDING_KYC = "pending_kyc"
BOOKED = "booked"

OUTCOME_AUTH_REQUIRED = "authentication_required"
OUTCOME_CONFLICT = "ownership_conflict"
OUTCOME_VERIFICATION_REQUIRED = "verification_required"
OUTCOME_KYC_REQUIRED = "kyc_required"
OUTCOME_BOOKED = "booked"

OUTCOME_MESSAGES = {
    OUTCOME_AUTH_REQUIRED: "Sign in to book this package",
    OUTCOME_CONFLICT: "This package belongs to another account",
    OUTCOME_VERIFICATION_REQUIRED: "Verify your phone number to continue",
    OUTCOME_KYC_REQUIRED: "Complete KYC to confirm the booking",
    OUTCOME_BOOKED: "Package booked",
}


@dataclass(frozen=True)
class BookingDecision:
    outcome: str
    # None leaves the stored status untouched
    status: str | None = None
    claim_owner: bool = False

    @property
    def message(self) -> str:
        return OUTCOME_MESSAGES[self.outcome]


def evaluate(
    caller_id: uuid.UUID | None,
    profile: UserProfile | None,
    owner_id: uuid.UUID | None,
    current_status: str = GENERATED,
) -> BookingDecision:
    """Pure transition function, first matching rule wins.

    1. no caller -> awaiting_auth
    2. owned by someone else -> conflict, status unchanged
    3. phone not verified -> awaiting_verification
    4. KYC not verified -> pending_kyc
    5. otherwise -> booked

    An unowned package is claimed by the caller from rule 3 on. A booked
    package never moves backwards: its owner gets ``booked`` again and
    everyone else gets the matching outcome without a status change.
    """
    if current_status == BOOKED:
        if caller_id is None:
            return BookingDecision(OUTCOME_AUTH_REQUIRED)
        if owner_id is not None and owner_id != caller_id:
            return BookingDecision(OUTCOME_CONFLICT)
        return BookingDecision(OUTCOME_BOOKED, BOOKED)

    if caller_id is None:
        return BookingDecision(OUTCOME_AUTH_REQUIRED, AWAITING_AUTH)
    if owner_id is not None and owner_id != caller_id:
        return BookingDecision(OUTCOME_CONFLICT)

    claim = owner_id is None
    if profile is None or not profile.phone_verified:
        return BookingDecision(OUTCOME_VERIFICATION_REQUIRED, AWAITING_VERIFICATION, claim)
    if not profile.kyc_verified:
        return BookingDecision(OUTCOME_KYC_REQUIRED, PENDING_KYC, claim)
    return BookingDecision(OUTCOME_BOOKED, BOOKED, claim)
