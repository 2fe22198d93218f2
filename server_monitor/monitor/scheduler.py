"""Check scheduler — on-demand and periodic sweeps over the registry.

All registry writes happen on the event loop. The blocking HTTP probe runs
in a thread pool so a slow server never stalls the loop, and its result is
applied back on the loop through ``ServerRegistry.modify``.

Sweeps are sequential (one server at a time) and never overlap. The
auto-check timer is a single asyncio task; reconfiguring cancels it before
a new one is armed.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from ..registry.registry import ServerRegistry
from ..registry.store import BlobStore, load_auto_check, save_auto_check
from .checker import CHECK_TIMEOUT, check_server
from .models import (
    MAX_INTERVAL_MINUTES,
    MIN_INTERVAL_MINUTES,
    AutoCheckConfig,
    CheckResult,
    Server,
    append_check,
    utcnow,
)
from .network import NetworkGate

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60

OFFLINE_MESSAGE = "Could not connect to server. Please check the domain name and try again."


class CheckScheduler:
    """Runs server checks and owns the auto-check timer."""

    def __init__(
        self,
        registry: ServerRegistry,
        store: BlobStore,
        gate: NetworkGate,
        *,
        timeout: float = CHECK_TIMEOUT,
        match_expected: bool = False,
        ready_timeout: float | None = 10.0,
        checker: Callable[[Server], CheckResult] | None = None,
        on_change: Callable[[Server], Any] | None = None,
        path_probe: Callable[[], bool] | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.gate = gate
        self.ready_timeout = ready_timeout
        # Synchronous connectivity query used when no observation arrives in time
        self.path_probe = path_probe
        self.on_change = on_change  # observer hook, called after every write
        self.auto_check = AutoCheckConfig()
        self._checker = checker or functools.partial(
            check_server, gate=gate, timeout=timeout, match_expected=match_expected,
        )
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="check")
        self._server_locks: dict[str, asyncio.Lock] = {}
        self._timer: asyncio.Task[None] | None = None
        self._startup_task: asyncio.Task[None] | None = None
        self._sweep_tasks: set[asyncio.Task[Any]] = set()
        self._sweep_running = False

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Load auto-check settings and schedule the startup sweep.

        The first sweep waits for the network gate's first observation so it
        is not recorded as all-offline while connectivity is still unknown.
        If none arrives within ``ready_timeout``, ``path_probe`` supplies one;
        without a probe the sweep keeps waiting.
        """
        self.auto_check = load_auto_check(self.store)
        self._startup_task = asyncio.create_task(self._startup(), name="scheduler-startup")
        logger.info(
            "Check scheduler started (auto-check %s, every %d min)",
            "on" if self.auto_check.enabled else "off",
            self.auto_check.interval_minutes,
        )

    async def _startup(self) -> None:
        if not await self.gate.wait_ready(self.ready_timeout):
            if self.path_probe is not None:
                loop = asyncio.get_running_loop()
                self.gate.observe(await loop.run_in_executor(self._executor, self.path_probe))
            else:
                await self.gate.wait_ready()
        if self.auto_check.enabled:
            self._arm_timer()  # sweeps immediately on arm
        else:
            await self.check_all()

    async def stop(self, grace: float = 5.0) -> None:
        """Stop the timer, give running sweeps ``grace`` seconds to finish,
        then cancel whatever is left.

        A check cut off by cancellation puts its server back the way it was
        before the check started.
        """
        timer = self._timer
        self._cancel_timer()
        running = set(self._sweep_tasks)
        if self._sweep_running and self._startup_task is not None:
            running.add(self._startup_task)
        if running and grace > 0:
            await asyncio.wait(running, timeout=grace)
        pending = [t for t in (timer, self._startup_task, *self._sweep_tasks) if t is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._sweep_tasks.clear()
        self._startup_task = None
        self._executor.shutdown(wait=False)
        logger.info("Check scheduler stopped")

    # ── Checks ───────────────────────────────────────────────────────────────

    async def check_one(self, server_id: str) -> str | None:
        """Check one server. Returns a user-facing message when it is offline."""
        result = await self._run_check(server_id)
        if result is not None and not result.is_online:
            return OFFLINE_MESSAGE
        return None

    async def check_all(self) -> list[CheckResult]:
        """Check every registered server in registry order, one at a time.

        A sweep requested while another is running is skipped.
        """
        if self._sweep_running:
            logger.info("Sweep already in progress, skipping")
            return []

        self._sweep_running = True
        results: list[CheckResult] = []
        try:
            servers = self.registry.snapshot()
            logger.info("Sweep started: %d servers", len(servers))
            for server in servers:
                try:
                    result = await self._run_check(server.id)
                except Exception:
                    logger.exception("Check failed for %s", server.domain)
                    continue
                if result is not None:
                    results.append(result)
            self.registry.save()
            logger.info(
                "Sweep finished: %d/%d online",
                sum(1 for r in results if r.is_online), len(results),
            )
        finally:
            self._sweep_running = False
        return results

    async def _run_check(self, server_id: str) -> CheckResult | None:
        lock = self._server_locks.setdefault(server_id, asyncio.Lock())
        async with lock:
            before = self.registry.get(server_id)
            checking = self.registry.modify(server_id, _mark_checking)
            if before is None or checking is None:
                self._server_locks.pop(server_id, None)
                return None
            self._emit(checking)

            loop = asyncio.get_running_loop()
            try:
                result = await loop.run_in_executor(self._executor, self._checker, checking)
            except asyncio.CancelledError:
                restored = self.registry.modify(
                    server_id, functools.partial(_restore_status, before=before),
                )
                if restored is not None:
                    logger.info("Check of %s cancelled, status restored", restored.domain)
                    self._emit(restored)
                raise

            updated = self.registry.modify(server_id, functools.partial(_apply_result, result=result))
            if updated is None:
                logger.info("Server %s removed during check, dropping result", server_id)
                self._server_locks.pop(server_id, None)
                return None
            self._emit(updated)

        logger.debug(
            "Check %s: %s (%d)",
            updated.domain, "online" if result.is_online else "offline", result.status_code,
        )
        return result

    def _emit(self, server: Server) -> None:
        if self.on_change:
            try:
                self.on_change(server)
            except Exception:
                logger.exception("on_change callback error")

    # ── Auto-check ───────────────────────────────────────────────────────────

    async def configure_auto_check(self, enabled: bool, interval_minutes: int) -> AutoCheckConfig:
        """Persist new auto-check settings and re-arm the timer immediately."""
        if not MIN_INTERVAL_MINUTES <= interval_minutes <= MAX_INTERVAL_MINUTES:
            raise ValueError(
                f"interval_minutes must be between {MIN_INTERVAL_MINUTES} and "
                f"{MAX_INTERVAL_MINUTES}, got {interval_minutes}"
            )
        self.auto_check = AutoCheckConfig(enabled=enabled, interval_minutes=interval_minutes)
        save_auto_check(self.store, self.auto_check)

        self._cancel_timer()
        if enabled:
            self._arm_timer()
        else:
            logger.info("Auto-check disabled")
        return self.auto_check

    def _arm_timer(self) -> None:
        self._cancel_timer()
        seconds = self.auto_check.interval_minutes * SECONDS_PER_MINUTE
        self._timer = asyncio.create_task(self._timer_loop(seconds), name="auto-check")
        logger.info("Auto-check armed: every %d min", self.auto_check.interval_minutes)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _timer_loop(self, interval: float) -> None:
        """Sweep now, then at a fixed rate of ``interval`` seconds."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            try:
                self._spawn_sweep()
                next_tick += interval
                await asyncio.sleep(max(0.0, next_tick - loop.time()))
            except asyncio.CancelledError:
                break

    def _spawn_sweep(self) -> None:
        # Separate task: cancelling the timer must not cancel a running sweep
        task = asyncio.create_task(self.check_all(), name="sweep")
        self._sweep_tasks.add(task)
        task.add_done_callback(self._sweep_tasks.discard)

    # ── Introspection ────────────────────────────────────────────────────────

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def sweep_running(self) -> bool:
        return self._sweep_running

    def status(self) -> dict[str, Any]:
        return {
            "auto_check": {
                "enabled": self.auto_check.enabled,
                "interval_minutes": self.auto_check.interval_minutes,
            },
            "timer_armed": self.timer_armed,
            "sweep_running": self._sweep_running,
            "network_available": self.gate.available,
            "servers": len(self.registry),
        }


def _mark_checking(server: Server) -> Server:
    server.is_online = None
    server.last_checked = utcnow()
    return server


def _restore_status(server: Server, before: Server) -> Server:
    server.is_online = before.is_online
    server.last_checked = before.last_checked
    return server


def _apply_result(server: Server, result: CheckResult) -> Server:
    updated = append_check(server, result)
    updated.is_online = result.is_online
    updated.last_checked = utcnow()
    return updated
