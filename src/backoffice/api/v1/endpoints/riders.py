"""
Rider API Endpoints.

Onboarding and maintenance of delivery riders, guarded by ``riders.*``:
- GET    /riders               paginated list with search and status filters
- GET    /riders/template      CSV template for bulk uploads
- POST   /riders               create one rider (credentials email + acknowledgements)
- POST   /riders/bulk-upload   create riders from CSV (no notifications)
- GET    /riders/{id}
- PATCH  /riders/{id}          partial update
- DELETE /riders/{id}          soft delete
"""
from __future__ import annotations

from pathlib import Path
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import Settings, get_settings
from ....core.exceptions import FileValidationError
from ....core.rbac import RidersDeleter, RidersReader, RidersWriter
from ....core.responses import GenericResponse, PaginatedResponse, PaginationMeta
from ....db.session import get_db
from ....models.enums import EmploymentStatus, OnboardingStatus
from ....schemas.rider import (
    AcknowledgementFlags,
    BulkUploadResponse,
    RiderCreate,
    RiderCreateResponse,
    RiderResponse,
    RiderUpdate,
)
from ....services.acknowledgement_service import AcknowledgementService
from ....services.blob_storage_service import StorageBackend, get_blob_storage_service
from ....services.email_service import EmailService, get_email_service
from ....services.pdf_service import PdfRenderer, get_pdf_renderer
from ....services.rider_service import RiderService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/riders")


# =============================================================================
# Dependencies
# =============================================================================

async def get_rider_service(
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[EmailService, Depends(get_email_service)],
    storage: Annotated[StorageBackend, Depends(get_blob_storage_service)],
    renderer: Annotated[PdfRenderer, Depends(get_pdf_renderer)],
    db: AsyncSession = Depends(get_db),
) -> RiderService:
    return RiderService(
        db,
        mailer=mailer,
        acknowledgements=AcknowledgementService(db, storage, renderer, settings),
        settings=settings,
    )


Riders = Annotated[RiderService, Depends(get_rider_service)]


# =============================================================================
# LIST / TEMPLATE
# =============================================================================

@router.get(
    "",
    response_model=PaginatedResponse[RiderResponse],
    summary="List riders",
)
async def list_riders(
    current_user: RidersReader,
    service: Riders,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, description="Match name, code, email or phone"),
    employment_status: EmploymentStatus | None = Query(None),
    onboarding_status: OnboardingStatus | None = Query(None),
    is_active: bool | None = Query(None),
) -> PaginatedResponse[RiderResponse]:
    riders, total = await service.list_riders(
        page=page,
        page_size=page_size,
        search=search,
        employment_status=employment_status.value if employment_status else None,
        onboarding_status=onboarding_status.value if onboarding_status else None,
        is_active=is_active,
    )
    return PaginatedResponse(
        message="Riders retrieved",
        data=[RiderResponse.model_validate(r) for r in riders],
        pagination=PaginationMeta.from_total(total, page, page_size),
    )


@router.get(
    "/template",
    summary="Download the bulk upload CSV template",
    response_class=Response,
)
async def download_template(current_user: RidersReader) -> Response:
    return Response(
        content=RiderService.csv_template(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="rider-upload-template.csv"'},
    )


# =============================================================================
# CREATE
# =============================================================================

@router.post(
    "",
    response_model=RiderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a rider",
    description=(
        "Creates the rider, then emails login credentials (when the rider has an "
        "email), generates the visa acknowledgement, and the SIM acknowledgement "
        "when a company SIM is set. The flags report what actually succeeded."
    ),
)
async def create_rider(
    payload: RiderCreate,
    current_user: RidersWriter,
    service: Riders,
) -> RiderCreateResponse:
    result = await service.create_rider(payload, created_by=current_user)
    return RiderCreateResponse(
        rider=RiderResponse.model_validate(result.rider),
        email_sent=result.email_sent,
        acknowledgements=AcknowledgementFlags(
            visa=result.visa_acknowledgement,
            sim=result.sim_acknowledgement,
        ),
    )


@router.post(
    "/bulk-upload",
    response_model=BulkUploadResponse,
    summary="Create riders from a CSV file",
    description="Each row is created independently. No emails or acknowledgements are produced.",
)
async def bulk_upload(
    current_user: RidersWriter,
    service: Riders,
    settings: Annotated[Settings, Depends(get_settings)],
    file: UploadFile = File(..., description="CSV file, UTF-8"),
) -> BulkUploadResponse:
    if Path(file.filename or "").suffix.lower() != ".csv":
        raise FileValidationError(
            message="Only CSV files are accepted",
            filename=file.filename,
            allowed_types=["csv"],
        )
    content = await file.read()
    if len(content) > settings.max_bulk_upload_bytes:
        raise FileValidationError(
            message=f"CSV exceeds the {settings.MAX_BULK_UPLOAD_MB}MB limit",
            filename=file.filename,
        )

    results = await service.bulk_upload(content, created_by=current_user)
    return BulkUploadResponse(
        success=results.failed == 0,
        message=f"Processed {results.successful + results.failed} rows: "
        f"{results.successful} created, {results.failed} failed",
        results=results,
    )


# =============================================================================
# GET / UPDATE / DELETE
# =============================================================================

@router.get(
    "/{rider_id}",
    response_model=GenericResponse[RiderResponse],
    summary="Get rider by ID",
)
async def get_rider(rider_id: int, current_user: RidersReader, service: Riders) -> GenericResponse[RiderResponse]:
    rider = await service.get_rider(rider_id)
    return GenericResponse(message="Rider retrieved", data=RiderResponse.model_validate(rider))


@router.patch(
    "/{rider_id}",
    response_model=GenericResponse[RiderResponse],
    summary="Update a rider",
)
async def update_rider(
    rider_id: int,
    payload: RiderUpdate,
    current_user: RidersWriter,
    service: Riders,
) -> GenericResponse[RiderResponse]:
    rider = await service.update_rider(rider_id, payload)
    return GenericResponse(message="Rider updated successfully", data=RiderResponse.model_validate(rider))


@router.delete(
    "/{rider_id}",
    response_model=GenericResponse[RiderResponse],
    summary="Deactivate a rider",
)
async def delete_rider(rider_id: int, current_user: RidersDeleter, service: Riders) -> GenericResponse[RiderResponse]:
    rider = await service.delete_rider(rider_id)
    return GenericResponse(message="Rider deactivated", data=RiderResponse.model_validate(rider))
