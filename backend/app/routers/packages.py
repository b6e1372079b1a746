"""Package router — generation, read, update, clone, booking and history."""

import logging
import uuid

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, get_optional_user
from app.models.user import User
from app.schemas.package import (
    BookingHistoryItem,
    BookingResponse,
    BookPackageRequest,
    ClonePackageRequest,
    GeneratePackageRequest,
    PackageResult,
    UpdatePackageRequest,
)
from app.services import booking_workflow
from app.services.errors import (
    InvalidConfigurationError,
    PackageAccessDeniedError,
    PackageError,
    PackageLockedError,
    PackageNotFoundError,
)
from app.services.package_service import package_service

logger = logging.getLogger(__name__)

router = APIRouter()

OUTCOME_STATUS_CODES = {
    booking_workflow.OUTCOME_AUTH_REQUIRED: 401,
    booking_workflow.OUTCOME_VERIFICATION_REQUIRED: 403,
    booking_workflow.OUTCOME_CONFLICT: 409,
    booking_workflow.OUTCOME_KYC_REQUIRED: 202,
    booking_workflow.OUTCOME_BOOKED: 200,
}


def _http_error(e: PackageError) -> HTTPException:
    if isinstance(e, PackageNotFoundError):
        return HTTPException(status_code=404, detail=str(e) or "Not found")
    if isinstance(e, (PackageAccessDeniedError, PackageLockedError)):
        return HTTPException(status_code=403, detail=str(e) or "Forbidden")
    if isinstance(e, InvalidConfigurationError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail="Package operation failed")


@router.post("/generate", response_model=PackageResult)
async def generate_package(
    req: GeneratePackageRequest,
    user: User | None = Depends(get_optional_user),
):
    """Generate (and store) a priced package. Identical requests are deduplicated."""
    try:
        return await package_service.generate(req, user)
    except PackageError as e:
        raise _http_error(e)


@router.get("/history", response_model=list[BookingHistoryItem])
async def package_history(
    limit: int | None = Query(None, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await package_service.history(db, user, limit)


@router.get("/{package_id}", response_model=PackageResult)
async def get_package(
    package_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    try:
        return await package_service.get(db, package_id, user)
    except PackageError as e:
        raise _http_error(e)


@router.patch("/{package_id}", response_model=PackageResult)
async def update_package(
    package_id: uuid.UUID,
    req: UpdatePackageRequest,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    """Targeted edit (cab, hotels, activities, visibility) or reschedule via a new start date."""
    try:
        return await package_service.update(db, package_id, req, user)
    except PackageError as e:
        raise _http_error(e)


@router.post("/{package_id}/clone", response_model=PackageResult)
async def clone_package(
    package_id: uuid.UUID,
    req: ClonePackageRequest,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    try:
        return await package_service.clone(db, package_id, req.start_date, user)
    except PackageError as e:
        raise _http_error(e)


@router.post("/{package_id}/book", response_model=BookingResponse)
async def book_package(
    package_id: uuid.UUID,
    req: BookPackageRequest | None = Body(None),
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    """Advance the booking workflow; the HTTP status mirrors the outcome."""
    try:
        result = await package_service.book(db, package_id, user, req)
    except PackageError as e:
        raise _http_error(e)

    return JSONResponse(
        status_code=OUTCOME_STATUS_CODES.get(result.outcome, 200),
        content=result.model_dump(mode="json"),
    )
