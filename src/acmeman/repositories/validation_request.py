"""ValidationRequest repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pypgkit import BaseRepository, Database

from acmeman.core.types import ChallengeType, ValidationStatus
from acmeman.models.validation_request import ValidationRequest

if TYPE_CHECKING:
    from uuid import UUID


class ValidationRequestRepository(BaseRepository[ValidationRequest]):
    table_name = "validation_requests"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> ValidationRequest:
        return ValidationRequest(
            id=row["id"],
            certificate_id=row["certificate_id"],
            domain=row["domain"],
            status=ValidationStatus(row["status"]),
            order_location=row["order_location"],
            order_identity=row["order_identity"],
            challenge_type=ChallengeType(row["challenge_type"]),
            challenge_token=row["challenge_token"],
            challenge_authorization=row["challenge_authorization"],
            expires_at=row.get("expires_at"),
            position=row.get("position", 0),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: ValidationRequest) -> dict:
        return {
            "id": entity.id,
            "certificate_id": entity.certificate_id,
            "domain": entity.domain,
            "status": entity.status.value,
            "order_location": entity.order_location,
            "order_identity": entity.order_identity,
            "challenge_type": entity.challenge_type.value,
            "challenge_token": entity.challenge_token,
            "challenge_authorization": entity.challenge_authorization,
            "expires_at": entity.expires_at,
            "position": entity.position,
        }

    def find_by_certificate(self, certificate_id: UUID) -> list[ValidationRequest]:
        """Return the certificate's requests in provider authorization order."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM validation_requests WHERE certificate_id = %s ORDER BY position, created_at",
            (certificate_id,),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def update_status(self, request_id: UUID, status: ValidationStatus) -> ValidationRequest | None:
        """Set the status field, the only field mutable after creation."""
        db = Database.get_instance()
        row = db.fetch_one(
            "UPDATE validation_requests SET status = %s, updated_at = now() "
            "WHERE id = %s RETURNING *",
            (status.value, request_id),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None
