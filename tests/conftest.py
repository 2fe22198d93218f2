"""Shared test fixtures."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path

import pytest

from server_monitor.monitor.models import CheckResult, Server, classify
from server_monitor.monitor.network import NetworkGate
from server_monitor.registry.registry import ServerRegistry
from server_monitor.registry.store import BlobStore


class FakeChecker:
    """Stands in for check_server: canned status codes per domain, records calls.

    A code of 0 means "connection failed". ``raise_for`` domains raise instead.
    """

    def __init__(
        self,
        responses: dict[str, int] | None = None,
        delay: float = 0.0,
        raise_for: set[str] | None = None,
    ) -> None:
        self.responses = responses or {}
        self.delay = delay
        self.raise_for = raise_for or set()
        self.calls: list[str] = []

    def __call__(self, server: Server) -> CheckResult:
        self.calls.append(server.domain)
        if self.delay:
            time.sleep(self.delay)
        if server.domain in self.raise_for:
            raise RuntimeError(f"checker blew up on {server.domain}")
        code = self.responses.get(server.domain, 200)
        if code == 0:
            return CheckResult.offline("Could not connect to the server")
        return CheckResult(status_code=code, is_online=classify(code))


@pytest.fixture
def store(tmp_path: Path) -> BlobStore:
    s = BlobStore(db_path=tmp_path / "test_monitor.db")
    yield s
    s.close()


@pytest.fixture
def registry(store: BlobStore) -> ServerRegistry:
    return ServerRegistry(store)


@pytest.fixture
def gate() -> NetworkGate:
    """A gate that has already seen the network as available."""
    g = NetworkGate()
    g.observe(True)
    return g


@pytest.fixture
def fake_checker() -> FakeChecker:
    return FakeChecker()


@pytest.fixture
def make_result() -> Callable[..., CheckResult]:
    def _make(code: int = 200, **kwargs) -> CheckResult:
        return CheckResult(status_code=code, is_online=classify(code), **kwargs)
    return _make


@pytest.fixture
def make_checker() -> type[FakeChecker]:
    return FakeChecker
