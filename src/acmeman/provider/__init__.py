"""ACME provider access.

:mod:`acmeman.provider.base` defines the small object model the
orchestrator drives (session, order, authorization, challenge);
:mod:`acmeman.provider.acme_v2` implements it over the ``acme`` client
library.
"""

from acmeman.provider.base import (
    ProviderAuthorization,
    ProviderChallenge,
    ProviderConnector,
    ProviderOrder,
    ProviderSession,
)

__all__ = [
    "ProviderAuthorization",
    "ProviderChallenge",
    "ProviderConnector",
    "ProviderOrder",
    "ProviderSession",
]
