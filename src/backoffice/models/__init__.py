"""Models package - SQLAlchemy ORM models."""
from .acknowledgement import Acknowledgement
from .document import RiderDocument
from .email_config import EmailConfiguration
from .enums import (
    AcknowledgementStatus,
    AcknowledgementType,
    DocumentStatus,
    DocumentType,
    EmploymentStatus,
    OnboardingStatus,
)
from .rider import Rider, RiderCodeCounter
from .role import Permission, Role, role_permissions, user_roles
from .user import User

__all__ = [
    "Acknowledgement",
    "AcknowledgementStatus",
    "AcknowledgementType",
    "DocumentStatus",
    "DocumentType",
    "EmailConfiguration",
    "EmploymentStatus",
    "OnboardingStatus",
    "Permission",
    "Rider",
    "RiderCodeCounter",
    "RiderDocument",
    "Role",
    "User",
    "role_permissions",
    "user_roles",
]
