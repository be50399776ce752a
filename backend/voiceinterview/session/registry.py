from __future__ import annotations

import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any


@dataclass
class ConnectionEntry:
    user_id: str
    orchestrator: Any = None
    active: bool = True
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)


class ConnectionRegistry:
    """Live interview connections in this process, kept briefly after disconnect."""

    def __init__(self):
        self._lock = Lock()
        self._connections: dict[str, ConnectionEntry] = {}

    def register(self, connection_id: str, user_id: str, orchestrator) -> None:
        with self._lock:
            self._connections[connection_id] = ConnectionEntry(user_id=user_id, orchestrator=orchestrator)

    def touch(self, connection_id: str) -> None:
        with self._lock:
            entry = self._connections.get(connection_id)
            if entry is not None:
                entry.updated_at = time.time()

    def mark_inactive(self, connection_id: str) -> None:
        with self._lock:
            entry = self._connections.get(connection_id)
            if entry is not None:
                # Drop the orchestrator so a closed connection holds no providers.
                entry.active = False
                entry.orchestrator = None
                entry.updated_at = time.time()

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for entry in self._connections.values() if entry.active)

    def connections_for_user(self, user_id: str) -> list[str]:
        with self._lock:
            return [
                connection_id
                for connection_id, entry in self._connections.items()
                if entry.active and entry.user_id == user_id
            ]

    def cleanup_inactive(self, ttl_sec: float) -> int:
        cutoff = time.time() - max(30.0, float(ttl_sec or 900.0))
        with self._lock:
            stale = [
                connection_id
                for connection_id, entry in self._connections.items()
                if not entry.active and entry.updated_at <= cutoff
            ]
            for connection_id in stale:
                self._connections.pop(connection_id, None)
        return len(stale)


connection_registry = ConnectionRegistry()
