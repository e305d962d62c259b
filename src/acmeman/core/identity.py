"""Content-addressed identities for provider resources.

Accounts and orders are keyed locally by the SHA-256 of the location
URL the provider assigned them.
"""

from __future__ import annotations

import hashlib


def location_identity(location: str) -> str:
    """Return the uppercase hex SHA-256 digest of *location* (UTF-8)."""
    return hashlib.sha256(location.encode("utf-8")).hexdigest().upper()


def account_identity(account_location: str) -> str:
    return location_identity(account_location)


def order_identity(order_location: str) -> str:
    return location_identity(order_location)
