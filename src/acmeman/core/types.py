"""Enumerated types for ACME Manager.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that psycopg serialises as TEXT and JSON round-trips
naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

_LE_PRODUCTION_DIRECTORY = "https://acme-v02.api.letsencrypt.org/directory"
_LE_STAGING_DIRECTORY = "https://acme-staging-v02.api.letsencrypt.org/directory"


class AcmeProvider(StrEnum):
    """ACME providers an account or certificate can be bound to."""

    LETS_ENCRYPT = "LetsEncrypt"
    LETS_ENCRYPT_STAGING = "LetsEncryptStaging"

    @property
    def directory_url(self) -> str:
        return _DIRECTORIES[self]

    @property
    def is_production(self) -> bool:
        return self is AcmeProvider.LETS_ENCRYPT


_DIRECTORIES: dict[AcmeProvider, str] = {
    AcmeProvider.LETS_ENCRYPT: _LE_PRODUCTION_DIRECTORY,
    AcmeProvider.LETS_ENCRYPT_STAGING: _LE_STAGING_DIRECTORY,
}


# ---------------------------------------------------------------------------
# Validation / order status
# ---------------------------------------------------------------------------


class ValidationStatus(StrEnum):
    """ACME authorization/order status vocabulary."""

    PENDING = "pending"
    READY = "ready"
    PROCESSING = "processing"
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


class CertificateStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    PROCESSING = "processing"
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Challenge types
# ---------------------------------------------------------------------------


class ChallengeType(StrEnum):
    HTTP_01 = "http-01"
    DNS_01 = "dns-01"


# ---------------------------------------------------------------------------
# Caller authority
# ---------------------------------------------------------------------------


class Authority(StrEnum):
    ANONYMOUS = "anonymous"
    AGENT_ADMIN = "agent_admin"


# ---------------------------------------------------------------------------
# Key curves
# ---------------------------------------------------------------------------


class KeyCurve(StrEnum):
    PRIME256V1 = "prime256v1"
    SECP384R1 = "secp384r1"
