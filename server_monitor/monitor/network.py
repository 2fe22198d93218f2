"""Network availability — the gate consulted before every check, and the
monitor that feeds it.

The monitor probes a well-known TCP endpoint on an interval and reports
path transitions (satisfied / not satisfied) to its subscribers. The gate
keeps the latest observation and a one-shot "first observation" signal that
startup awaits before the first sweep.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


class NetworkGate:
    """Latest known connectivity state. Read without blocking from any thread."""

    def __init__(self) -> None:
        self._available = False
        self._observed = False
        self._ready = asyncio.Event()
        self.last_change: str | None = None

    @property
    def available(self) -> bool:
        return self._available

    @property
    def observed(self) -> bool:
        return self._observed

    def observe(self, available: bool) -> None:
        """Record a path observation. Call from the event loop thread."""
        if not self._observed or available != self._available:
            self.last_change = datetime.now(timezone.utc).isoformat()
            logger.info("Network status updated: %s", "Available" if available else "Not Available")
        self._available = available
        self._observed = True
        self._ready.set()

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait for the first observation. Returns False if ``timeout`` elapsed first."""
        if self._observed:
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("No network observation after %ss", timeout)
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self._available,
            "observed": self._observed,
            "last_change": self.last_change,
        }


class ConnectivityMonitor:
    """Long-lived observer of outbound connectivity."""

    def __init__(
        self,
        host: str = "1.1.1.1",
        port: int = 53,
        interval: float = 10.0,
        timeout: float = 3.0,
    ) -> None:
        self.host = host
        self.port = port
        self.interval = interval
        self.timeout = timeout
        self._subscribers: list[Callable[[bool], Any]] = []
        self._last: bool | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False

    def subscribe(self, callback: Callable[[bool], Any]) -> None:
        self._subscribers.append(callback)

    def current_path(self) -> bool:
        """Synchronous probe: can we open a TCP connection to the probe endpoint?"""
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
            sock.close()
            return True
        except OSError:
            return False

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._monitor_loop(), name="connectivity-monitor")
        logger.info("Connectivity monitor started (%s:%d every %ss)", self.host, self.port, self.interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Connectivity monitor stopped")

    async def _monitor_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            try:
                satisfied = await loop.run_in_executor(None, self.current_path)
                if satisfied != self._last:
                    self._last = satisfied
                    self._notify(satisfied)
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Connectivity probe error")
                await asyncio.sleep(self.interval)

    def _notify(self, satisfied: bool) -> None:
        for callback in self._subscribers:
            try:
                callback(satisfied)
            except Exception:
                logger.exception("Connectivity subscriber error")
