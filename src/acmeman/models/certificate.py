"""Certificate (order aggregate) entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from acmeman.core.types import AcmeProvider, CertificateStatus
    from acmeman.models.validation_request import ValidationRequest

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Certificate:
    """One ACME order and the validation requests it owns.

    ``order_identity`` is the deduplication key; ``domains`` never
    changes after creation.
    """

    id: UUID
    account_id: UUID
    order_identity: str
    order_location: str
    domains: tuple[str, ...]
    save_key_pair: bool
    provider: AcmeProvider
    status: CertificateStatus
    validation_requests: tuple[ValidationRequest, ...] = ()
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
