"""Services package - Business logic layer."""
# Lazy imports to avoid circular dependencies
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .blob_storage_service import LocalBlobStorageService, S3BlobStorageService
    from .otp_service import OTPService
    from .pdf_service import PdfRenderer


def get_blob_storage_service() -> "LocalBlobStorageService | S3BlobStorageService":
    """Get the global blob storage service instance."""
    from .blob_storage_service import get_blob_storage_service as _get
    return _get()


def get_otp_service() -> "OTPService":
    """Get the global OTP service instance."""
    from .otp_service import get_otp_service as _get
    return _get()


def get_pdf_renderer() -> "PdfRenderer":
    from .pdf_service import get_pdf_renderer as _get
    return _get()


__all__ = [
    "get_blob_storage_service",
    "get_otp_service",
    "get_pdf_renderer",
]
