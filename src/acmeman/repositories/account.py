"""Account repository."""

from __future__ import annotations

from pypgkit import BaseRepository

from acmeman.core.types import AcmeProvider
from acmeman.models.account import Account


class AccountRepository(BaseRepository[Account]):
    table_name = "accounts"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Account:
        return Account(
            id=row["id"],
            server_uri=row["server_uri"],
            provider=AcmeProvider(row["provider"]),
            account_identity=row["account_identity"],
            account_location=row["account_location"],
            email=row["email"],
            private_key_pem=row["private_key_pem"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Account) -> dict:
        return {
            "id": entity.id,
            "server_uri": entity.server_uri,
            "provider": entity.provider.value,
            "account_identity": entity.account_identity,
            "account_location": entity.account_location,
            "email": entity.email,
            "private_key_pem": entity.private_key_pem,
        }

    def find_by_identity(self, account_identity: str) -> Account | None:
        results = self.find_by({"account_identity": account_identity})
        return results[0] if results else None
