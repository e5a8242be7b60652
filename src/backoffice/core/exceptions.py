"""
Application errors.

Each subclass fixes an HTTP status and a default ``error_code``; the handler
in ``main.py`` renders them as ``{"success": false, "error": {...}}``.
Callers may still override the message, code and details per raise.
"""

from typing import Any, ClassVar


class AppException(Exception):
    status_code: ClassVar[int] = 500
    error_code: str = "APP_ERROR"
    default_message: ClassVar[str] = "Application error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        self.message = message or self.default_message
        if error_code:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.details: dict[str, Any] = dict(details or {})
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.error_code}, {self.status_code}, {self.message!r})"


# --- generic HTTP errors ----------------------------------------------------


class BadRequestError(AppException):
    status_code = 400
    error_code = "BAD_REQUEST"
    default_message = "Invalid request"


class ValidationError(BadRequestError):
    """Input that passed the schema but failed a business rule.

    ``errors`` uses the same ``{field, message}`` shape as schema validation
    failures, so clients handle both alike.
    """

    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)
        if errors:
            self.details["validation_errors"] = errors


class UnauthorizedError(AppException):
    status_code = 401
    error_code = "UNAUTHORIZED"
    default_message = "Authentication required"


class ForbiddenError(AppException):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Permission denied"


class NotFoundError(AppException):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Resource not found"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        resource_type: str | None = None,
        resource_id: str | int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)
        if resource_type:
            self.details["resource_type"] = resource_type
        if resource_id is not None:
            self.details["resource_id"] = resource_id


class ConflictError(AppException):
    status_code = 409
    error_code = "CONFLICT"
    default_message = "Resource conflict"


class InternalServerError(AppException):
    error_code = "INTERNAL_ERROR"
    default_message = "Internal server error"


class ServiceUnavailableError(AppException):
    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"


class ConfigurationError(AppException):
    error_code = "CONFIGURATION_ERROR"
    default_message = "Configuration error"


# --- users and roles ----------------------------------------------------------


class UserNotFoundError(NotFoundError):
    error_code = "USER_NOT_FOUND"

    def __init__(self, user_id: int | None = None, email: str | None = None) -> None:
        ref = user_id if user_id is not None else email
        super().__init__(f"User not found: {ref}", resource_type="user", resource_id=ref)


class UserAlreadyExistsError(ConflictError):
    error_code = "USER_ALREADY_EXISTS"

    def __init__(self, email: str | None = None, phone: str | None = None) -> None:
        taken = {k: v for k, v in (("email", email), ("phone", phone)) if v}
        super().__init__("User with this email or phone already exists", details=taken)


class RoleNotFoundError(NotFoundError):
    error_code = "ROLE_NOT_FOUND"

    def __init__(self, role_id: int | None = None) -> None:
        super().__init__(f"Role not found: {role_id}", resource_type="role", resource_id=role_id)


class RoleAlreadyExistsError(ConflictError):
    error_code = "ROLE_ALREADY_EXISTS"

    def __init__(self, name: str) -> None:
        super().__init__(f"Role '{name}' already exists", details={"name": name})


class ProtectedRoleError(ForbiddenError):
    """The super admin role can be edited but never deleted."""

    error_code = "PROTECTED_ROLE"

    def __init__(self, name: str) -> None:
        super().__init__(f"The '{name}' role cannot be deleted", details={"name": name})


class SuperAdminGrantError(ForbiddenError):
    error_code = "SUPER_ADMIN_GRANT_FORBIDDEN"

    def __init__(self, name: str) -> None:
        super().__init__(f"Only a Super Admin can assign the '{name}' role", details={"name": name})


class RoleInUseError(ConflictError):
    error_code = "ROLE_IN_USE"

    def __init__(self, name: str, user_count: int) -> None:
        super().__init__(
            f"Role '{name}' is assigned to {user_count} user(s) and cannot be deleted",
            details={"name": name, "user_count": user_count},
        )


# --- riders -------------------------------------------------------------------


class RiderNotFoundError(NotFoundError):
    error_code = "RIDER_NOT_FOUND"

    def __init__(self, rider_id: int | None = None) -> None:
        super().__init__(f"Rider not found: {rider_id}", resource_type="rider", resource_id=rider_id)


class RiderAlreadyExistsError(ConflictError):
    """A unique identity value is already taken by another rider.

    The message is the same whichever field collided; the colliding fields,
    when known, are listed in ``details["conflicting_fields"]``.
    """

    error_code = "RIDER_ALREADY_EXISTS"
    default_message = (
        "Rider with this phone, email, Emirates ID, passport number, "
        "license number or employee ID already exists"
    )

    def __init__(self, conflicting_fields: list[str] | None = None) -> None:
        super().__init__(details={"conflicting_fields": conflicting_fields} if conflicting_fields else None)


class DocumentNotFoundError(NotFoundError):
    error_code = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: int | None = None) -> None:
        super().__init__(
            f"Document not found: {document_id}", resource_type="rider_document", resource_id=document_id
        )


class AcknowledgementNotFoundError(NotFoundError):
    error_code = "ACKNOWLEDGEMENT_NOT_FOUND"

    def __init__(self, acknowledgement_id: int | None = None) -> None:
        super().__init__(
            f"Acknowledgement not found: {acknowledgement_id}",
            resource_type="acknowledgement",
            resource_id=acknowledgement_id,
        )


class EmailConfigNotFoundError(NotFoundError):
    error_code = "EMAIL_CONFIG_NOT_FOUND"

    def __init__(self, config_id: int | None = None) -> None:
        super().__init__(
            f"Email configuration not found: {config_id}",
            resource_type="email_configuration",
            resource_id=config_id,
        )


class FileValidationError(BadRequestError):
    error_code = "FILE_VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        filename: str | None = None,
        allowed_types: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        if filename:
            self.details["filename"] = filename
        if allowed_types:
            self.details["allowed_types"] = allowed_types
