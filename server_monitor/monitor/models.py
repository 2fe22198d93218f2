"""Monitor data models — servers, check results, auto-check config.

History retention lives here too: ``append_check`` is the only path that
grows a server's history and it enforces the retention cap.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

HISTORY_LIMIT = 100

DEFAULT_INTERVAL_MINUTES = 5
MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 60


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one reachability probe. Immutable once created."""

    status_code: int  # 0 when the connection failed
    is_online: bool
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=utcnow)
    message: str = field(default="", compare=False)  # diagnostic only, not persisted

    @classmethod
    def offline(cls, message: str = "") -> "CheckResult":
        return cls(status_code=0, is_online=False, message=message)


@dataclass
class Server:
    """A monitored HTTP endpoint with its check history."""

    domain: str
    expected_status_code: int = 200
    id: str = field(default_factory=_new_id)
    is_online: bool | None = None  # None = not checked yet / check in progress
    last_checked: datetime | None = None
    status_history: list[CheckResult] = field(default_factory=list)

    @property
    def formatted_domain(self) -> str:
        if self.domain.lower().startswith(("http://", "https://")):
            return self.domain
        return "https://" + self.domain

    @property
    def last_status_check(self) -> CheckResult | None:
        return self.status_history[-1] if self.status_history else None

    @property
    def status_text(self) -> str:
        if self.is_online is None:
            return "Not Checked"
        return "Online" if self.is_online else "Offline"

    def copy(self) -> "Server":
        # CheckResult is frozen, so a fresh list is enough
        return replace(self, status_history=list(self.status_history))


@dataclass
class AutoCheckConfig:
    """Periodic sweep settings."""

    enabled: bool = False
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES


# ── History ──────────────────────────────────────────────────────────────────


def append_check(server: Server, result: CheckResult, limit: int = HISTORY_LIMIT) -> Server:
    """Return a copy of ``server`` with ``result`` appended to its history.

    Oldest entries are evicted first once the history exceeds ``limit``.
    The input server is left untouched.
    """
    history = [*server.status_history, result]
    if len(history) > limit:
        history = history[len(history) - limit:]
    return replace(server, status_history=history)


# ── Classification ───────────────────────────────────────────────────────────


def classify(status_code: int, expected_status_code: int | None = None) -> bool:
    """Decide whether a response status means the server is online.

    Without an expected code any 2xx counts as online. With one, only an
    exact match does.
    """
    if expected_status_code is not None:
        return status_code == expected_status_code
    return 200 <= status_code <= 299
