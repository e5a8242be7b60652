"""
Rider Document API Endpoints.

- POST   /riders/{id}/documents     multipart upload (type, file, notes)
- GET    /riders/{id}/documents     documents with signed download URLs
- PATCH  /documents/{id}/status     verify or reject
- DELETE /documents/{id}
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import Settings, get_settings
from ....core.rbac import RidersDeleter, RidersReader, RidersWriter
from ....core.responses import GenericResponse, MessageResponse
from ....db.session import get_db
from ....models.enums import DocumentType
from ....schemas.document import DocumentResponse, DocumentStatusUpdate
from ....services.blob_storage_service import StorageBackend, get_blob_storage_service
from ....services.document_service import DocumentService

router = APIRouter()


async def get_document_service(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[StorageBackend, Depends(get_blob_storage_service)],
    db: AsyncSession = Depends(get_db),
) -> DocumentService:
    return DocumentService(db, storage, settings)


Documents = Annotated[DocumentService, Depends(get_document_service)]


@router.post(
    "/riders/{rider_id}/documents",
    response_model=GenericResponse[DocumentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Upload a rider document",
)
async def upload_document(
    rider_id: int,
    current_user: RidersWriter,
    service: Documents,
    type: DocumentType = Form(..., description="Document type"),
    file: UploadFile = File(...),
    notes: str | None = Form(None),
) -> GenericResponse[DocumentResponse]:
    content = await file.read()
    document = await service.upload(
        rider_id,
        type,
        file.filename,
        content,
        content_type=file.content_type,
        notes=notes,
    )
    url = await service.storage.signed_url(document.storage_key)
    return GenericResponse(
        message="Document uploaded",
        data=DocumentResponse.model_validate(document).model_copy(update={"url": url}),
    )


@router.get(
    "/riders/{rider_id}/documents",
    response_model=GenericResponse[list[DocumentResponse]],
    summary="List a rider's documents",
)
async def list_documents(
    rider_id: int,
    current_user: RidersReader,
    service: Documents,
) -> GenericResponse[list[DocumentResponse]]:
    documents = await service.list_for_rider(rider_id)
    return GenericResponse(
        message="Documents retrieved",
        data=[
            DocumentResponse.model_validate(doc).model_copy(update={"url": url})
            for doc, url in documents
        ],
    )


@router.patch(
    "/documents/{document_id}/status",
    response_model=GenericResponse[DocumentResponse],
    summary="Verify or reject a document",
)
async def update_document_status(
    document_id: int,
    payload: DocumentStatusUpdate,
    current_user: RidersWriter,
    service: Documents,
) -> GenericResponse[DocumentResponse]:
    document = await service.update_status(document_id, payload.status, payload.notes)
    return GenericResponse(message="Document status updated", data=DocumentResponse.model_validate(document))


@router.delete(
    "/documents/{document_id}",
    response_model=MessageResponse,
    summary="Delete a document",
)
async def delete_document(
    document_id: int,
    current_user: RidersDeleter,
    service: Documents,
) -> MessageResponse:
    await service.delete(document_id)
    return MessageResponse(message="Document deleted")
