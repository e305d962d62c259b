"""Account entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from acmeman.core.types import AcmeProvider

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Account:
    """A registered identity with an ACME provider.

    ``account_identity`` is the uppercase SHA-256 hex of
    ``account_location`` and must match it after every bind.
    """

    id: UUID
    server_uri: str
    provider: AcmeProvider
    account_identity: str
    account_location: str
    email: str
    private_key_pem: str = field(repr=False)
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
