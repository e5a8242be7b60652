"""
Acknowledgement API Endpoints.

- GET  /riders/{id}/acknowledgements          acknowledgements of a rider
- POST /riders/{id}/acknowledgements          generate a VISA or SIM acknowledgement
- GET  /acknowledgements/pending              unsigned acknowledgements, oldest first
- POST /acknowledgements/{id}/acknowledge     mark signed
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import Settings, get_settings
from ....core.rbac import RidersReader, RidersWriter
from ....core.responses import GenericResponse, PaginatedResponse, PaginationMeta
from ....db.session import get_db
from ....models.acknowledgement import Acknowledgement
from ....schemas.acknowledgement import (
    AcknowledgementGenerateRequest,
    AcknowledgementResponse,
    AcknowledgeRequest,
)
from ....services.acknowledgement_service import AcknowledgementService
from ....services.blob_storage_service import StorageBackend, get_blob_storage_service
from ....services.pdf_service import PdfRenderer, get_pdf_renderer

router = APIRouter()


async def get_acknowledgement_service(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[StorageBackend, Depends(get_blob_storage_service)],
    renderer: Annotated[PdfRenderer, Depends(get_pdf_renderer)],
    db: AsyncSession = Depends(get_db),
) -> AcknowledgementService:
    return AcknowledgementService(db, storage, renderer, settings)


Acknowledgements = Annotated[AcknowledgementService, Depends(get_acknowledgement_service)]


async def _response(service: AcknowledgementService, ack: Acknowledgement) -> AcknowledgementResponse:
    return AcknowledgementResponse.model_validate(ack).model_copy(
        update={"download_url": await service.download_url(ack)}
    )


@router.get(
    "/riders/{rider_id}/acknowledgements",
    response_model=GenericResponse[list[AcknowledgementResponse]],
    summary="List a rider's acknowledgements",
)
async def list_rider_acknowledgements(
    rider_id: int,
    current_user: RidersReader,
    service: Acknowledgements,
) -> GenericResponse[list[AcknowledgementResponse]]:
    acknowledgements = await service.list_for_rider(rider_id)
    return GenericResponse(
        message="Acknowledgements retrieved",
        data=[await _response(service, ack) for ack in acknowledgements],
    )


@router.post(
    "/riders/{rider_id}/acknowledgements",
    response_model=GenericResponse[AcknowledgementResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Generate an acknowledgement document",
)
async def generate_acknowledgement(
    rider_id: int,
    payload: AcknowledgementGenerateRequest,
    current_user: RidersWriter,
    service: Acknowledgements,
) -> GenericResponse[AcknowledgementResponse]:
    ack = await service.generate_for_rider(rider_id, payload.type, current_user)
    return GenericResponse(message="Acknowledgement generated", data=await _response(service, ack))


@router.get(
    "/acknowledgements/pending",
    response_model=PaginatedResponse[AcknowledgementResponse],
    summary="List unsigned acknowledgements",
)
async def list_pending(
    current_user: RidersReader,
    service: Acknowledgements,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
) -> PaginatedResponse[AcknowledgementResponse]:
    acknowledgements, total = await service.list_pending((page - 1) * page_size, page_size)
    return PaginatedResponse(
        message="Pending acknowledgements retrieved",
        data=[await _response(service, ack) for ack in acknowledgements],
        pagination=PaginationMeta.from_total(total, page, page_size),
    )


@router.post(
    "/acknowledgements/{acknowledgement_id}/acknowledge",
    response_model=GenericResponse[AcknowledgementResponse],
    summary="Mark an acknowledgement as signed",
)
async def acknowledge(
    acknowledgement_id: int,
    current_user: RidersWriter,
    service: Acknowledgements,
    payload: AcknowledgeRequest | None = None,
) -> GenericResponse[AcknowledgementResponse]:
    signature_name = payload.signature_name if payload else None
    ack = await service.acknowledge(acknowledgement_id, signature_name)
    return GenericResponse(message="Acknowledgement signed", data=await _response(service, ack))
