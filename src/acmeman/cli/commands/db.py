"""Database management subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config)
    else:
        sys.exit(1)


def _db_status(config) -> None:
    """Check connectivity and that every table exists."""
    from acmeman.db import init_database, missing_tables

    try:
        db = init_database(config.settings.database)
        db.fetch_value("SELECT 1")
        missing = missing_tables(db)
    except Exception:
        log.exception("Database status check failed")
        sys.exit(1)

    if missing:
        print(f"database: reachable, missing tables: {', '.join(missing)}")  # noqa: T201
        sys.exit(1)
    print("database: reachable, schema complete")  # noqa: T201
