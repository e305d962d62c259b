"""Certificate (order aggregate) repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from acmeman.core.types import AcmeProvider, CertificateStatus
from acmeman.models.certificate import Certificate

if TYPE_CHECKING:
    from uuid import UUID


class CertificateRepository(BaseRepository[Certificate]):
    """Persists the order aggregate root.

    Validation requests are stored by
    :class:`~acmeman.repositories.validation_request.ValidationRequestRepository`;
    entities returned here carry an empty ``validation_requests`` tuple
    until the service layer attaches them.
    """

    table_name = "certificates"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Certificate:
        return Certificate(
            id=row["id"],
            account_id=row["account_id"],
            order_identity=row["order_identity"],
            order_location=row["order_location"],
            domains=tuple(row["domains"]),
            save_key_pair=row["save_key_pair"],
            provider=AcmeProvider(row["provider"]),
            status=CertificateStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Certificate) -> dict:
        return {
            "id": entity.id,
            "account_id": entity.account_id,
            "order_identity": entity.order_identity,
            "order_location": entity.order_location,
            "domains": Jsonb(list(entity.domains)),
            "save_key_pair": entity.save_key_pair,
            "provider": entity.provider.value,
            "status": entity.status.value,
        }

    def find_by_order_identity(self, order_identity: str) -> Certificate | None:
        results = self.find_by({"order_identity": order_identity})
        return results[0] if results else None

    def create_or_get(self, entity: Certificate) -> tuple[Certificate, bool]:
        """Insert *entity* unless its order identity is already stored.

        Concurrent placements of the same provider order race on the
        unique ``order_identity`` constraint; the loser reads back the
        surviving row.

        Returns ``(certificate, created)``.
        """
        db = Database.get_instance()
        row = self._entity_to_row(entity)
        columns = ", ".join(row)
        placeholders = ", ".join("%s" for _ in row)
        inserted = db.fetch_one(
            f"INSERT INTO certificates ({columns}) VALUES ({placeholders}) "  # noqa: S608
            "ON CONFLICT (order_identity) DO NOTHING RETURNING *",
            tuple(row.values()),
            as_dict=True,
        )
        if inserted:
            return self._row_to_entity(inserted), True
        existing = self.find_by_order_identity(entity.order_identity)
        return existing, False

    def update_status(
        self,
        certificate_id: UUID,
        status: CertificateStatus,
    ) -> Certificate | None:
        db = Database.get_instance()
        row = db.fetch_one(
            "UPDATE certificates SET status = %s, updated_at = now() WHERE id = %s RETURNING *",
            (status.value, certificate_id),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None
