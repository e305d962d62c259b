"""Entity models for ACME Manager.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from acmeman.models.account import Account
from acmeman.models.agent import Agent
from acmeman.models.certificate import Certificate
from acmeman.models.validation_request import ValidationRequest

__all__ = [
    "Account",
    "Agent",
    "Certificate",
    "ValidationRequest",
]
