"""Thread-safe token -> key-authorization store.

One store is owned by each agent application and lives for the whole
process.  Entries are removed only by explicit withdrawal (or
:meth:`ChallengeStore.clear`); nothing expires on its own.
"""

from __future__ import annotations

import threading


class ChallengeStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, str] = {}

    def put(self, token: str, authorization: str) -> bool:
        """Store *authorization* under *token*.

        Returns ``True`` if an existing entry was overwritten.
        """
        with self._lock:
            replaced = token in self._entries
            self._entries[token] = authorization
        return replaced

    def remove(self, token: str) -> bool:
        """Remove *token*; returns ``False`` if it was not stored."""
        with self._lock:
            return self._entries.pop(token, None) is not None

    def get(self, token: str) -> str | None:
        with self._lock:
            return self._entries.get(token)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
