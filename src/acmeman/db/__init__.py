"""Database subsystem for ACME Manager.

Public API::

    from acmeman.db import init_database, missing_tables
"""

from acmeman.db.init import init_database, missing_tables

__all__ = ["init_database", "missing_tables"]
