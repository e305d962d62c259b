"""Connection bootstrap and schema inspection.

``init_database`` turns the ``database`` settings section into the
pypgkit :class:`Database` singleton, applying ``schema.sql`` on first
start when ``auto_setup`` is enabled.  ``missing_tables`` backs the
``db status`` command.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from acmeman.config.settings import DatabaseSettings

log = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).with_name("schema.sql")

# Tables created by schema.sql, in dependency order.
TABLES = ("accounts", "certificates", "validation_requests", "agents")


def init_database(settings: DatabaseSettings) -> Database:
    """Return the process-wide :class:`Database`, creating it on first use."""
    if Database.is_initialized():
        return Database.get_instance()

    log.info(
        "Connecting to %s@%s:%s/%s (pool %d-%d, auto_setup=%s)",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
        settings.min_connections,
        settings.max_connections,
        settings.auto_setup,
    )
    config = DatabaseConfig(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
        sslmode=settings.sslmode,
        min_connections=settings.min_connections,
        max_connections=settings.max_connections,
        connection_timeout=settings.connection_timeout,
    )
    return Database.init(
        config=config,
        schema_path=SCHEMA_FILE if settings.auto_setup else None,
        auto_setup=settings.auto_setup,
        interactive=False,
    )


def missing_tables(db: Database) -> list[str]:
    """Return the names of expected tables absent from the ``public`` schema."""
    rows = db.fetch_all(
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = 'public' AND table_name = ANY(%s)",
        (list(TABLES),),
    )
    present = {row["table_name"] for row in rows}
    return [name for name in TABLES if name not in present]
