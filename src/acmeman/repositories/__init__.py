"""Repository classes for ACME Manager.

Each repository extends :class:`pypgkit.BaseRepository` with custom
query methods for the orchestration domain.
"""

from acmeman.repositories.account import AccountRepository
from acmeman.repositories.agent import AgentRepository
from acmeman.repositories.certificate import CertificateRepository
from acmeman.repositories.validation_request import ValidationRequestRepository

__all__ = [
    "AccountRepository",
    "AgentRepository",
    "CertificateRepository",
    "ValidationRequestRepository",
]
