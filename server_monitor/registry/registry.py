"""Server registry — the set of monitored servers, persisted to the blob store.

Single owner of every Server record. Readers get copies; writers go through
``add`` / ``update`` / ``remove`` / ``modify`` so each write lands on the
current record and is persisted straight after.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from ..monitor.models import HISTORY_LIMIT, CheckResult, Server
from .store import SERVERS_KEY, BlobStore

logger = logging.getLogger(__name__)


class ServerRegistry:
    """Ordered id → Server mapping with write-through persistence."""

    def __init__(self, store: BlobStore) -> None:
        self._store = store
        self._servers: dict[str, Server] = {}

    def load(self) -> list[Server]:
        """Replace in-memory state with the persisted registry.

        Missing, unreadable or corrupt data yields an empty registry.
        """
        self._servers = {}
        try:
            raw = self._store.load(SERVERS_KEY)
        except sqlite3.Error:
            logger.exception("Failed to read saved servers, starting empty")
            return []

        if raw is None:
            logger.info("No saved servers found")
            return []

        try:
            entries = json.loads(raw)
            servers = [server_from_dict(e) for e in entries]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error("Saved servers are corrupt, starting empty: %s", e)
            return []

        for s in servers:
            self._servers[s.id] = s
        logger.info("Loaded %d servers from store", len(self._servers))
        return self.snapshot()

    # ── Reads ────────────────────────────────────────────────────────────────

    def get(self, server_id: str) -> Server | None:
        server = self._servers.get(server_id)
        return server.copy() if server else None

    def snapshot(self) -> list[Server]:
        """Copies of all servers in registry order."""
        return [s.copy() for s in self._servers.values()]

    def __len__(self) -> int:
        return len(self._servers)

    def __contains__(self, server_id: object) -> bool:
        return server_id in self._servers

    # ── Writes ───────────────────────────────────────────────────────────────

    def add(self, domain: str, expected_status_code: int = 200) -> Server:
        server = Server(domain=domain, expected_status_code=expected_status_code)
        self._servers[server.id] = server
        logger.info("Added server %s (%s)", server.domain, server.id)
        self.save()
        return server.copy()

    def update(self, server_id: str, domain: str, expected_status_code: int) -> Server | None:
        """Change domain / expected code, keeping id, status and history.

        Unknown ids are a no-op and return None.
        """
        current = self._servers.get(server_id)
        if current is None:
            return None
        current.domain = domain
        current.expected_status_code = expected_status_code
        logger.info("Updated server %s → %s (expect %d)", server_id, domain, expected_status_code)
        self.save()
        return current.copy()

    def remove(self, server_ids: Iterable[str]) -> int:
        removed = 0
        for server_id in set(server_ids):
            if self._servers.pop(server_id, None) is not None:
                removed += 1
        if removed:
            logger.info("Removed %d server(s)", removed)
            self.save()
        return removed

    def modify(self, server_id: str, fn: Callable[[Server], Server]) -> Server | None:
        """Apply ``fn`` to the current record, store what it returns, persist.

        Returns None (and writes nothing) when the server no longer exists.
        """
        current = self._servers.get(server_id)
        if current is None:
            return None
        updated = fn(current.copy())
        self._servers[server_id] = updated
        self.save()
        return updated.copy()

    def save(self) -> bool:
        """Persist the full registry. Storage errors are logged, never raised."""
        try:
            self._store.save(SERVERS_KEY, json.dumps(self.to_dict()))
        except (sqlite3.Error, OSError):
            logger.exception("Failed to save servers")
            return False
        return True

    def to_dict(self) -> list[dict[str, Any]]:
        return [server_to_dict(s) for s in self._servers.values()]


# ── Serialization ────────────────────────────────────────────────────────────


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def check_to_dict(c: CheckResult) -> dict[str, Any]:
    return {
        "id": c.id,
        "timestamp": c.timestamp.isoformat(),
        "statusCode": c.status_code,
        "isOnline": c.is_online,
    }


def server_to_dict(s: Server) -> dict[str, Any]:
    return {
        "id": s.id,
        "domain": s.domain,
        "expectedStatusCode": s.expected_status_code,
        "isOnline": s.is_online,
        "lastChecked": _ts(s.last_checked),
        "statusHistory": [check_to_dict(c) for c in s.status_history],
    }


def server_from_dict(raw: dict[str, Any]) -> Server:
    history = [
        CheckResult(
            id=c["id"],
            timestamp=datetime.fromisoformat(c["timestamp"]),
            status_code=int(c["statusCode"]),
            is_online=bool(c["isOnline"]),
        )
        for c in raw.get("statusHistory") or []
    ]
    is_online = raw.get("isOnline")
    return Server(
        id=raw["id"],
        domain=raw["domain"],
        expected_status_code=int(raw.get("expectedStatusCode", 200)),
        is_online=None if is_online is None else bool(is_online),
        last_checked=_parse_ts(raw.get("lastChecked")),
        status_history=history[-HISTORY_LIMIT:],
    )
