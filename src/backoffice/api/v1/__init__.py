"""API v1 - versioned router.

Router structure
----------------
PUBLIC (no auth):
  /health/*           → health checks (liveness, readiness)
  /auth/*             → login, refresh, OTP registration, password reset
  /files/{key}        → signed local file downloads (signature checked per request)

AUTHENTICATED (permission enforced per endpoint):
  /auth/me                                   → any authenticated user
  /users/*, /roles/*                         → users.read / users.write / users.delete
  /riders/*, /acknowledgements/*, /documents/* → riders.read / riders.write / riders.delete
  /email-config/*                            → settings.read / settings.write / settings.delete
"""
from fastapi import APIRouter

from .endpoints import (
    acknowledgements,
    auth,
    documents,
    email_config,
    files,
    health,
    riders,
    roles,
    users,
)

router = APIRouter(prefix="/api/v1")

# =========================================================================
# PUBLIC ENDPOINTS
# =========================================================================

router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, tags=["Authentication"])
router.include_router(files.router, tags=["Files"])

# =========================================================================
# PERMISSION-GUARDED ENDPOINTS
# =========================================================================

router.include_router(users.router, tags=["Users"])
router.include_router(roles.router, tags=["Roles"])
# acknowledgements and documents register /riders/{id}/... routes; the
# rider router's /{rider_id} patterns do not overlap them
router.include_router(riders.router, tags=["Riders"])
router.include_router(acknowledgements.router, tags=["Acknowledgements"])
router.include_router(documents.router, tags=["Documents"])
router.include_router(email_config.router, tags=["Email Configuration"])
