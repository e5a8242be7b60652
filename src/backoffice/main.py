"""
Fleet Back Office API.

``app`` is the uvicorn entry point: ``uvicorn src.backoffice.main:app``.
"""
from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.v1 import router as v1_router
from .core.config import Settings, get_settings
from .core.exceptions import AppException
from .core.responses import ErrorDetail, ErrorResponse, ResponseMeta
from .db.session import close_db, get_db_manager
from .services.blob_storage_service import get_blob_storage_service
from .services.otp_service import close_otp_service

logger = structlog.get_logger()

API_DESCRIPTION = """
Administrative API for onboarding and managing delivery riders.

* **Riders**: generated rider codes, CSV bulk upload, search and updates
* **Acknowledgements**: visa and SIM PDFs that riders sign
* **Access control**: roles carrying `resource.action` permissions
* **Email**: credentials and OTPs over a configurable SMTP account

Every endpoint lives under `/api/v1/`.
"""

OPENAPI_TAGS = [
    {"name": "Health", "description": "Liveness, readiness and component status."},
    {"name": "Authentication", "description": "Login, OTP registration and password reset."},
    {"name": "Files", "description": "Signed downloads for locally stored files."},
    {"name": "Users", "description": "Back-office staff and their roles."},
    {"name": "Roles", "description": "Roles, the permission catalog and preset roles."},
    {"name": "Riders", "description": "Rider onboarding and maintenance."},
    {"name": "Acknowledgements", "description": "Visa and SIM acknowledgement documents."},
    {"name": "Documents", "description": "Rider document uploads and review."},
    {"name": "Email Configuration", "description": "SMTP accounts used for outbound mail."},
]

_BASE_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
}
_DOCS_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "img-src 'self' data: https://fastapi.tiangolo.com; "
    "frame-ancestors 'none'"
)
_DOCS_PATHS = frozenset({"/docs", "/redoc", "/openapi.json"})


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.LOG_LEVEL)
    renderer = structlog.dev.ConsoleRenderer() if settings.is_development else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # sqlalchemy, aiosmtplib, botocore and uvicorn use stdlib logging
    logging.basicConfig(
        level=level,
        stream=sys.stdout,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    configure_logging(settings)
    logger.info("startup", app=settings.APP_NAME, version=settings.APP_VERSION, env=settings.APP_ENV)

    # fail fast on a misconfigured storage backend
    get_blob_storage_service()
    logger.info("database_ping", **await get_db_manager().health_check())

    yield

    logger.info("shutdown")
    await close_otp_service()
    await close_db()


def _content_security_policy(path: str, settings: Settings) -> tuple[str, str]:
    """Return (CSP, X-Frame-Options) for *path*."""
    if path in _DOCS_PATHS and not settings.is_production:
        return _DOCS_CSP, "DENY"
    if path.startswith(f"{settings.BLOB_BASE_URL}/"):
        # acknowledgement PDFs and rider documents are previewed inline by the portal
        return "default-src 'self'; frame-ancestors 'self'", "SAMEORIGIN"
    return "default-src 'none'; frame-ancestors 'none'; base-uri 'none'", "DENY"


async def security_headers(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    response = await call_next(request)
    response.headers.update(_BASE_SECURITY_HEADERS)
    csp, frame_options = _content_security_policy(request.url.path, get_settings())
    response.headers["Content-Security-Policy"] = csp
    response.headers["X-Frame-Options"] = frame_options
    return response


async def request_id(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Propagate ``X-Request-ID`` (or mint one) into request state, logs and the response."""
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    with structlog.contextvars.bound_contextvars(request_id=rid):
        response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    return response


def _error_response(request: Request, status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details),
        meta=ResponseMeta(request_id=getattr(request.state, "request_id", None)),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    logger.warning("request_failed", code=exc.error_code, message=exc.message, path=request.url.path)
    return _error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning("request_invalid", path=request.url.path, errors=errors)
    return _error_response(
        request, 400, "VALIDATION_ERROR", "Request validation failed", {"validation_errors": errors}
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_crashed", path=request.url.path)
    message = str(exc) if get_settings().DEBUG else "An unexpected error occurred"
    return _error_response(request, 500, "INTERNAL_ERROR", message)


def create_application() -> FastAPI:
    settings = get_settings()
    expose_docs = settings.is_development

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=API_DESCRIPTION,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
        swagger_ui_parameters={"docExpansion": "list", "filter": True},
        lifespan=lifespan,
    )

    # middleware added last runs first: CORS, then request id, then headers
    app.middleware("http")(security_headers)
    app.middleware("http")(request_id)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.cors_methods_list,
        allow_headers=settings.cors_headers_list,
    )

    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(v1_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        links = {"service": settings.APP_NAME, "version": settings.APP_VERSION, "health": "/api/v1/health"}
        if expose_docs:
            links["docs"] = "/docs"
        return links

    return app


app = create_application()
