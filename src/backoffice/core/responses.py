"""
Response envelopes shared by every endpoint.

Success:  ``{"success": true, "message": ..., "data": ..., "meta": {...}}``
Lists add ``pagination``; errors replace ``message``/``data`` with ``error``.
Keys are camelCase on the wire; request bodies accept either case.
"""
import math
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ResponseMeta(APIModel):
    request_id: str | None = Field(default=None, description="Echo of X-Request-ID")
    timestamp: datetime = Field(default_factory=_utcnow)


class GenericResponse(APIModel, Generic[T]):
    success: bool = True
    message: str
    data: T
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class MessageResponse(APIModel):
    """For operations with nothing to return, such as deletes."""

    success: bool = True
    message: str


class PaginationMeta(APIModel):
    total: int
    page: int = Field(ge=1)
    page_size: int = Field(ge=1, le=100)
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def from_total(cls, total: int, page: int, page_size: int) -> "PaginationMeta":
        # an empty result is still one (empty) page
        pages = max(math.ceil(total / page_size), 1)
        return cls(
            total=total,
            page=page,
            page_size=page_size,
            total_pages=pages,
            has_next=page < pages,
            has_previous=page > 1,
        )


class PaginatedResponse(APIModel, Generic[T]):
    success: bool = True
    message: str
    data: list[T]
    pagination: PaginationMeta
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class ErrorDetail(APIModel):
    code: str = Field(description="Stable machine-readable code, e.g. RIDER_NOT_FOUND")
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(APIModel):
    success: bool = False
    error: ErrorDetail
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class HealthCheck(APIModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    latency_ms: float | None = None
    message: str | None = None


class HealthResponse(APIModel):
    status: str = Field(description="Worst status among the checks")
    service: str
    version: str
    environment: str
    checks: dict[str, HealthCheck] = Field(default_factory=dict)
