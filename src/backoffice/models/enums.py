"""Shared Enums for the application.

Enum values are stored as plain strings in the database.
"""
from enum import Enum


class EmploymentStatus(str, Enum):
    """Employment state of a rider."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


class OnboardingStatus(str, Enum):
    """Progress of a rider through onboarding."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class DocumentType(str, Enum):
    PASSPORT = "PASSPORT"
    EMIRATES_ID = "EMIRATES_ID"
    DRIVING_LICENSE = "DRIVING_LICENSE"
    WORK_PERMIT = "WORK_PERMIT"
    INSURANCE = "INSURANCE"
    PROFILE_PHOTO = "PROFILE_PHOTO"
    OTHER_DOCUMENT = "OTHER_DOCUMENT"


class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class AcknowledgementType(str, Enum):
    VISA = "VISA"
    SIM = "SIM"
    EQUIPMENT = "EQUIPMENT"
    TRAINING = "TRAINING"
    OTHER = "OTHER"


class AcknowledgementStatus(str, Enum):
    """Whether the rider has acknowledged a generated document.

    Attributes:
        PENDING: Generated, awaiting the rider's signature
        ACKNOWLEDGED: Signed off by the rider
    """
    PENDING = "PENDING"
    ACKNOWLEDGED = "ACKNOWLEDGED"
