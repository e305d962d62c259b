"""Agent repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from acmeman.models.agent import Agent

if TYPE_CHECKING:
    from uuid import UUID


class AgentRepository(BaseRepository[Agent]):
    table_name = "agents"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Agent:
        return Agent(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            token=row["token"],
            domains=tuple(row.get("domains") or ()),
            is_connected=row["is_connected"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Agent) -> dict:
        return {
            "id": entity.id,
            "name": entity.name,
            "url": entity.url,
            "token": entity.token,
            "domains": Jsonb(list(entity.domains)),
            "is_connected": entity.is_connected,
        }

    def find_all(self) -> list[Agent]:
        return self.find_by({})

    def find_for_domain(self, domain: str) -> list[Agent]:
        """Return every agent fronting *domain*, connected ones first."""
        agents = [a for a in self.find_all() if a.fronts(domain)]
        return sorted(agents, key=lambda a: (not a.is_connected, a.name))

    def set_connected(self, agent_id: UUID, connected: bool) -> bool:
        """Flip the connectivity flag.

        Returns ``True`` if the stored value changed.
        """
        db = Database.get_instance()
        count = db.execute(
            "UPDATE agents SET is_connected = %s, updated_at = now() "
            "WHERE id = %s AND is_connected <> %s",
            (connected, agent_id, connected),
        )
        return bool(count)
