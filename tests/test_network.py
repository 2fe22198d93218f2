"""Tests for the network gate and connectivity monitor."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from server_monitor.monitor.network import ConnectivityMonitor, NetworkGate


class TestNetworkGate:
    def test_initial_state(self) -> None:
        gate = NetworkGate()
        assert gate.available is False
        assert gate.observed is False

    def test_observe(self) -> None:
        gate = NetworkGate()
        gate.observe(True)
        assert gate.available is True
        assert gate.observed is True
        gate.observe(False)
        assert gate.available is False
        assert gate.to_dict()["observed"] is True

    @pytest.mark.asyncio
    async def test_wait_ready_times_out(self) -> None:
        gate = NetworkGate()
        assert await gate.wait_ready(timeout=0.01) is False

    @pytest.mark.asyncio
    async def test_wait_ready_after_observation(self) -> None:
        gate = NetworkGate()
        asyncio.get_running_loop().call_later(0.01, gate.observe, False)
        assert await gate.wait_ready(timeout=1) is True
        assert gate.available is False

    @pytest.mark.asyncio
    async def test_wait_ready_already_observed(self) -> None:
        gate = NetworkGate()
        gate.observe(True)
        assert await gate.wait_ready(timeout=0) is True


class TestConnectivityMonitor:
    @patch("server_monitor.monitor.network.socket.create_connection")
    def test_current_path_satisfied(self, mock_connect) -> None:
        mock_connect.return_value = MagicMock()
        monitor = ConnectivityMonitor(host="192.0.2.1", port=53)
        assert monitor.current_path() is True
        mock_connect.assert_called_once_with(("192.0.2.1", 53), timeout=monitor.timeout)

    @patch("server_monitor.monitor.network.socket.create_connection", side_effect=OSError("unreachable"))
    def test_current_path_unsatisfied(self, mock_connect) -> None:
        assert ConnectivityMonitor().current_path() is False

    @pytest.mark.asyncio
    async def test_reports_transitions_only(self) -> None:
        states = iter([True, True, False])
        monitor = ConnectivityMonitor(interval=0.01)
        seen: list[bool] = []
        monitor.subscribe(seen.append)

        with patch.object(monitor, "current_path", side_effect=lambda: next(states, False)):
            await monitor.start()
            await asyncio.sleep(0.15)
            await monitor.stop()

        assert seen == [True, False]

    @pytest.mark.asyncio
    async def test_feeds_gate(self) -> None:
        gate = NetworkGate()
        monitor = ConnectivityMonitor(interval=0.01)
        monitor.subscribe(gate.observe)

        with patch.object(monitor, "current_path", return_value=True):
            await monitor.start()
            assert await gate.wait_ready(timeout=1) is True
            await monitor.stop()

        assert gate.available is True

    @pytest.mark.asyncio
    async def test_subscriber_error_does_not_stop_others(self) -> None:
        monitor = ConnectivityMonitor(interval=0.01)
        seen: list[bool] = []

        def broken(_: bool) -> None:
            raise RuntimeError("subscriber failed")

        monitor.subscribe(broken)
        monitor.subscribe(seen.append)
        with patch.object(monitor, "current_path", return_value=True):
            await monitor.start()
            await asyncio.sleep(0.05)
            await monitor.stop()

        assert seen == [True]
