#!/usr/bin/env python3
"""Seed the preset roles and the first Super Admin account.

Safe to run repeatedly: preset roles that already exist are left alone and
the admin account is only created when no user has the seed email.

Usage
-----
# Seed using the DATABASE_URL env var:
    python scripts/seed_data.py

# Override the database URL on the command line:
    python scripts/seed_data.py --db-url postgresql+asyncpg://...

Environment variables
---------------------
SEED_ADMIN_EMAIL     Email of the seeded Super Admin (default: admin@flcd.com)
SEED_ADMIN_PHONE     Phone of the seeded Super Admin (default: +971501234567)
SEED_ADMIN_PASSWORD  Password of the seeded Super Admin. A random one is
                     generated and printed once when unset.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import secrets
import sys
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def _run_seed() -> None:
    # Imported late so --db-url reaches the settings before they are cached
    from src.backoffice.core.config import get_settings
    from src.backoffice.core.security import hash_password
    from src.backoffice.db.session import close_db, get_db_manager
    from src.backoffice.repositories.role_repository import RoleRepository
    from src.backoffice.repositories.user_repository import UserRepository
    from src.backoffice.services.rbac_service import RBACService

    settings = get_settings()

    try:
        async with get_db_manager().session() as db:
            results = await RBACService(db, settings).initialize_presets()
            for result in results:
                for outcome, name in result.items():
                    logger.info("  %-8s %s", outcome, name)

            users = UserRepository(db)
            if await users.get_by_email(settings.SEED_ADMIN_EMAIL) is not None:
                logger.info("Admin %s already exists; skipping", settings.SEED_ADMIN_EMAIL)
                return

            super_admin = await RoleRepository(db).get_by_name(settings.SUPER_ADMIN_ROLE_NAME)
            password = settings.SEED_ADMIN_PASSWORD or secrets.token_urlsafe(12)
            admin = await users.create(
                email=settings.SEED_ADMIN_EMAIL,
                phone=settings.SEED_ADMIN_PHONE or None,
                password_hash=hash_password(password),
                first_name="Super",
                last_name="Admin",
                roles=[super_admin] if super_admin else [],
            )
            logger.info("Created admin user id=%s email=%s", admin.id, admin.email)
            if not settings.SEED_ADMIN_PASSWORD:
                print(f"\nGenerated admin password (shown once): {password}\n")
    finally:
        await close_db()

    logger.info("Seed complete.")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--db-url", metavar="URL", default=None, help="Database connection string (overrides DATABASE_URL env var)")
    return parser.parse_args()


def seed(db_url: str | None = None) -> None:
    """Run the seed against *db_url*, or the configured database when omitted."""
    if db_url:
        os.environ["DATABASE_URL"] = db_url
    if not os.environ.get("DATABASE_URL") and not (_REPO_ROOT / ".env").exists():
        print("ERROR: DATABASE_URL is not set. Use --db-url or export DATABASE_URL.", file=sys.stderr)
        sys.exit(1)

    asyncio.run(_run_seed())


def main() -> None:
    seed(_parse_args().db_url)


if __name__ == "__main__":
    main()
