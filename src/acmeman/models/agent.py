"""Agent entity (remote HTTP-01 challenge responder)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Agent:
    id: UUID
    name: str
    url: str
    token: str = field(repr=False)
    domains: tuple[str, ...] = ()
    is_connected: bool = False
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH

    def fronts(self, domain: str) -> bool:
        """Return ``True`` if this agent serves challenges for *domain*.

        Entries are exact names or ``*.suffix`` wildcards matching one
        additional label.
        """
        name = domain.lower().removeprefix("*.")
        for entry in self.domains:
            entry = entry.lower()
            if entry == name:
                return True
            if entry.startswith("*."):
                suffix = entry[1:]
                head = name[: -len(suffix)] if name.endswith(suffix) else ""
                if head and "." not in head:
                    return True
        return False
