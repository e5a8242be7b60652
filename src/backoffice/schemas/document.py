"""Rider document schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field

from ..core.responses import APIModel
from ..models.enums import DocumentStatus


class DocumentStatusUpdate(APIModel):
    status: DocumentStatus
    notes: str | None = Field(None, max_length=2000)


class DocumentResponse(APIModel):
    id: int
    rider_id: int
    type: str
    status: str
    file_name: str
    file_size: int
    mime_type: str
    notes: str | None = None
    uploaded_at: datetime
    verified_at: datetime | None = None
    url: str | None = Field(None, description="Time-limited download URL")
