"""Repositories package - Data access layer."""
from .acknowledgement_repository import AcknowledgementRepository
from .document_repository import DocumentRepository
from .email_config_repository import EmailConfigRepository
from .rider_repository import RiderRepository
from .role_repository import RoleRepository
from .user_repository import UserRepository

__all__ = [
    "AcknowledgementRepository",
    "DocumentRepository",
    "EmailConfigRepository",
    "RiderRepository",
    "RoleRepository",
    "UserRepository",
]
