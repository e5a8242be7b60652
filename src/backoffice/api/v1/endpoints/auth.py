"""Authentication endpoints.

- POST /auth/login                     email + password → access/refresh tokens
- POST /auth/refresh                   refresh token → new token pair
- POST /auth/register/send-otp         start phone registration (code sent by email)
- POST /auth/register/verify-otp       verify code and create the account
- POST /auth/forgot-password/send-otp  email a reset code
- POST /auth/forgot-password/reset     verify code and set a new password
- GET  /auth/me                        profile + effective permissions
"""
from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import Settings, get_settings
from ....core.exceptions import (
    BadRequestError,
    ServiceUnavailableError,
    UnauthorizedError,
    UserAlreadyExistsError,
)
from ....core.rbac import CurrentUser
from ....core.responses import GenericResponse, MessageResponse
from ....core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    create_token,
    decode_token,
    hash_password,
    verify_password,
)
from ....db.session import get_db
from ....models.user import User
from ....repositories.user_repository import UserRepository
from ....schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    OTPSentResponse,
    RefreshRequest,
    RegisterSendOTPRequest,
    RegisterVerifyRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from ....schemas.user import UserProfileResponse, UserResponse
from ....services.email_service import EmailService, get_email_service
from ....services.otp_service import (
    PURPOSE_PASSWORD_RESET,
    PURPOSE_REGISTRATION,
    OTPService,
    get_otp_service,
)
from ....services.rbac_service import RBACService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth")

_RESET_SENT_MESSAGE = "If an account exists for this email, a reset code has been sent"


def _token_response(user: User, settings: Settings) -> TokenResponse:
    access_token, expires_in = create_token(
        user_id=user.id,
        token_type=ACCESS_TOKEN_TYPE,
        settings=settings,
        extra_claims={"email": user.email},
    )
    refresh_token, _ = create_token(user_id=user.id, token_type=REFRESH_TOKEN_TYPE, settings=settings)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


async def _deliver_otp(
    mailer: EmailService,
    settings: Settings,
    *,
    to_address: str,
    otp: str,
    purpose: str,
) -> None:
    sent = await mailer.send_otp(to_address=to_address, otp=otp, purpose=purpose)
    if sent:
        return
    if settings.is_development:
        logger.warning("otp_not_delivered_dev_code", purpose=purpose, otp=otp)
        return
    raise ServiceUnavailableError(
        message="Could not deliver the verification code. Please try again later.",
        error_code="OTP_DELIVERY_FAILED",
    )


# =============================================================================
# LOGIN / REFRESH
# =============================================================================

@router.post(
    "/login",
    response_model=GenericResponse[TokenResponse],
    summary="Log in with email and password",
)
async def login(
    payload: LoginRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[TokenResponse]:
    repo = UserRepository(db)
    user = await repo.get_by_email(payload.email)

    if user is None or not verify_password(payload.password, user.password_hash):
        logger.info("login_failed", reason="invalid_credentials")
        raise UnauthorizedError(message="Invalid email or password", error_code="INVALID_CREDENTIALS")
    if not user.is_active:
        logger.info("login_failed", reason="inactive", user_id=user.id)
        raise UnauthorizedError(message="Account is deactivated", error_code="ACCOUNT_INACTIVE")

    await repo.update_last_login(user)
    await db.commit()

    logger.info("login_succeeded", user_id=user.id)
    return GenericResponse(message="Login successful", data=_token_response(user, settings))


@router.post(
    "/refresh",
    response_model=GenericResponse[TokenResponse],
    summary="Exchange a refresh token for a new token pair",
)
async def refresh(
    payload: RefreshRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[TokenResponse]:
    user_id = decode_token(payload.refresh_token, expected_type=REFRESH_TOKEN_TYPE, settings=settings)
    user = await UserRepository(db).get_by_id(user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError(message="Invalid refresh token", error_code="INVALID_TOKEN")

    return GenericResponse(message="Token refreshed", data=_token_response(user, settings))


# =============================================================================
# REGISTRATION
# =============================================================================

@router.post(
    "/register/send-otp",
    response_model=OTPSentResponse,
    summary="Send a registration code",
)
async def register_send_otp(
    payload: RegisterSendOTPRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    otp_service: Annotated[OTPService, Depends(get_otp_service)],
    mailer: Annotated[EmailService, Depends(get_email_service)],
    db: AsyncSession = Depends(get_db),
) -> OTPSentResponse:
    if await UserRepository(db).exists_with_email_or_phone(payload.email, payload.phone):
        raise UserAlreadyExistsError(email=payload.email, phone=payload.phone)

    otp = await otp_service.issue(PURPOSE_REGISTRATION, payload.phone)
    await _deliver_otp(
        mailer,
        settings,
        to_address=payload.email,
        otp=otp,
        purpose=PURPOSE_REGISTRATION,
    )
    return OTPSentResponse(
        message="Verification code sent",
        expires_in=settings.OTP_EXPIRY_SECONDS,
    )


@router.post(
    "/register/verify-otp",
    response_model=GenericResponse[TokenResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Verify the registration code and create the account",
)
async def register_verify_otp(
    payload: RegisterVerifyRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    otp_service: Annotated[OTPService, Depends(get_otp_service)],
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[TokenResponse]:
    valid, message = await otp_service.verify(PURPOSE_REGISTRATION, payload.phone, payload.otp)
    if not valid:
        raise BadRequestError(message=message, error_code="INVALID_OTP")

    repo = UserRepository(db)
    if await repo.exists_with_email_or_phone(payload.email, payload.phone):
        raise UserAlreadyExistsError(email=payload.email, phone=payload.phone)

    user = await repo.create(
        email=payload.email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
    )
    await db.commit()

    logger.info("user_registered", user_id=user.id)
    return GenericResponse(message="Registration successful", data=_token_response(user, settings))


# =============================================================================
# PASSWORD RESET
# =============================================================================

@router.post(
    "/forgot-password/send-otp",
    response_model=OTPSentResponse,
    summary="Email a password reset code",
)
async def forgot_password_send_otp(
    payload: ForgotPasswordRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    otp_service: Annotated[OTPService, Depends(get_otp_service)],
    mailer: Annotated[EmailService, Depends(get_email_service)],
    db: AsyncSession = Depends(get_db),
) -> OTPSentResponse:
    user = await UserRepository(db).get_by_email(payload.email)
    # Same response whether or not the account exists
    if user is not None and user.is_active:
        otp = await otp_service.issue(PURPOSE_PASSWORD_RESET, user.email)
        await _deliver_otp(
            mailer,
            settings,
            to_address=user.email,
            otp=otp,
            purpose=PURPOSE_PASSWORD_RESET,
        )
    else:
        logger.info("password_reset_requested_unknown_account")

    return OTPSentResponse(message=_RESET_SENT_MESSAGE, expires_in=settings.OTP_EXPIRY_SECONDS)


@router.post(
    "/forgot-password/reset",
    response_model=MessageResponse,
    summary="Reset the password with a code",
)
async def forgot_password_reset(
    payload: ResetPasswordRequest,
    otp_service: Annotated[OTPService, Depends(get_otp_service)],
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    valid, message = await otp_service.verify(PURPOSE_PASSWORD_RESET, payload.email, payload.otp)
    if not valid:
        raise BadRequestError(message=message, error_code="INVALID_OTP")

    repo = UserRepository(db)
    user = await repo.get_by_email(payload.email)
    if user is None or not user.is_active:
        raise BadRequestError(message="Invalid or expired code", error_code="INVALID_OTP")

    await repo.update(user, {"password_hash": hash_password(payload.new_password)})
    await db.commit()

    logger.info("password_reset_completed", user_id=user.id)
    return MessageResponse(message="Password has been reset")


# =============================================================================
# PROFILE
# =============================================================================

@router.get(
    "/me",
    response_model=GenericResponse[UserProfileResponse],
    summary="Current user profile and permissions",
)
async def me(
    current_user: CurrentUser,
    settings: Annotated[Settings, Depends(get_settings)],
    db: AsyncSession = Depends(get_db),
) -> GenericResponse[UserProfileResponse]:
    permissions = RBACService(db, settings).resolve_effective_permissions(current_user)
    profile = UserProfileResponse.model_validate(current_user).model_copy(
        update={"permissions": sorted(permissions)}
    )
    return GenericResponse(message="Profile retrieved", data=profile)
