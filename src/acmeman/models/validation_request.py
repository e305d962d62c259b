"""ValidationRequest entity: one authorization (domain) within an order."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from acmeman.core.types import ChallengeType, ValidationStatus

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class ValidationRequest:
    id: UUID
    certificate_id: UUID
    domain: str
    status: ValidationStatus
    order_location: str
    order_identity: str
    challenge_type: ChallengeType
    challenge_token: str
    challenge_authorization: str
    expires_at: datetime | None = None
    position: int = 0
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
