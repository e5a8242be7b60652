#!/usr/bin/env python3
"""Apply or inspect the back-office schema migrations.

Wraps the Alembic commands the deployment pipeline needs, so schema changes
can be applied from an init container without the API server running.

    python scripts/migrate.py upgrade            # to head
    python scripts/migrate.py upgrade --seed     # then create preset roles + admin
    python scripts/migrate.py downgrade -1
    python scripts/migrate.py current
    python scripts/migrate.py history
    python scripts/migrate.py revision -m "add vehicles" --autogenerate

``--db-url`` wins over ``DATABASE_URL``; without either, alembic.ini is used.
Run from the repository root.
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="migrate.py", description="Fleet back-office schema migrations")
    parser.add_argument("--db-url", metavar="URL", help="Database URL (overrides DATABASE_URL)")
    parser.add_argument("--config", metavar="PATH", default=str(REPO_ROOT / "alembic.ini"), help="alembic.ini path")

    commands = parser.add_subparsers(dest="command", required=True)

    upgrade = commands.add_parser("upgrade", help="Upgrade to a revision (default: head)")
    upgrade.add_argument("revision", nargs="?", default="head")
    upgrade.add_argument("--seed", action="store_true", help="Run scripts/seed_data.py afterwards")

    downgrade = commands.add_parser("downgrade", help="Downgrade to a revision (default: -1)")
    downgrade.add_argument("revision", nargs="?", default="-1")

    stamp = commands.add_parser("stamp", help="Mark a revision as applied without running it")
    stamp.add_argument("revision", nargs="?", default="head")

    commands.add_parser("current", help="Show the applied revision")
    commands.add_parser("heads", help="Show head revisions")

    history = commands.add_parser("history", help="List revisions")
    history.add_argument("-v", "--verbose", action="store_true")

    revision = commands.add_parser("revision", help="Create a new revision file")
    revision.add_argument("-m", "--message", required=True)
    revision.add_argument("--autogenerate", action="store_true")

    return parser


def _safe_url(url: str) -> str:
    from sqlalchemy.engine import make_url

    return make_url(url).render_as_string(hide_password=True)


def run(args: argparse.Namespace) -> None:
    from alembic import command
    from alembic.config import Config

    config = Config(args.config)
    db_url = args.db_url or os.environ.get("DATABASE_URL")
    if db_url:
        # env.py reads DATABASE_URL through the app settings
        os.environ["DATABASE_URL"] = db_url
        config.set_main_option("sqlalchemy.url", db_url)
        print(f"[migrate] database: {_safe_url(db_url)}")

    if args.command == "upgrade":
        command.upgrade(config, args.revision)
    elif args.command == "downgrade":
        command.downgrade(config, args.revision)
    elif args.command == "stamp":
        command.stamp(config, args.revision)
    elif args.command == "current":
        command.current(config, verbose=True)
    elif args.command == "heads":
        command.heads(config, verbose=True)
    elif args.command == "history":
        command.history(config, verbose=args.verbose)
    elif args.command == "revision":
        command.revision(config, message=args.message, autogenerate=args.autogenerate)


def main() -> int:
    args = _build_parser().parse_args()
    try:
        run(args)
    except Exception as exc:  # noqa: BLE001
        print(f"[migrate] {args.command} failed: {exc}", file=sys.stderr)
        return 1

    if getattr(args, "seed", False):
        from scripts.seed_data import seed

        seed(args.db_url)

    print(f"[migrate] {args.command} done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
