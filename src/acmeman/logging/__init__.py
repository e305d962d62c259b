"""Logging subsystem for ACME Manager.

Public API::

    from acmeman.logging import configure_logging

    configure_logging(settings.logging)
"""

from acmeman.logging.setup import configure_logging

__all__ = ["configure_logging"]
