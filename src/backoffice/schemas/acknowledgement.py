"""Acknowledgement schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from ..core.responses import APIModel


class AcknowledgementGenerateRequest(APIModel):
    type: Literal["VISA", "SIM"]


class AcknowledgeRequest(APIModel):
    signature_name: str | None = Field(
        None,
        max_length=200,
        description="Name printed in the signature block; defaults to the rider's name",
    )


class AcknowledgementResponse(APIModel):
    id: int
    rider_id: int
    type: str
    status: str
    file_name: str
    file_url: str | None = None
    generated_by_id: int
    acknowledged_at: datetime | None = None
    created_at: datetime
    download_url: str | None = Field(None, description="Time-limited download URL")
