"""Tests for monitor models, history retention and classification."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from server_monitor.monitor.models import (
    HISTORY_LIMIT,
    AutoCheckConfig,
    CheckResult,
    Server,
    append_check,
    classify,
)

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _result(i: int) -> CheckResult:
    return CheckResult(status_code=200, is_online=True, timestamp=T0 + timedelta(minutes=i))


# ── Server ───────────────────────────────────────────────────────────────────


class TestServer:
    def test_defaults(self) -> None:
        s = Server(domain="example.com")
        assert s.id
        assert s.expected_status_code == 200
        assert s.is_online is None
        assert s.last_checked is None
        assert s.status_history == []

    def test_ids_are_unique(self) -> None:
        assert Server(domain="a").id != Server(domain="a").id

    def test_formatted_domain_adds_https(self) -> None:
        assert Server(domain="example.com").formatted_domain == "https://example.com"

    def test_formatted_domain_keeps_scheme(self) -> None:
        assert Server(domain="http://example.com").formatted_domain == "http://example.com"
        assert Server(domain="HTTPS://example.com").formatted_domain == "HTTPS://example.com"

    def test_status_text(self) -> None:
        s = Server(domain="example.com")
        assert s.status_text == "Not Checked"
        s.is_online = True
        assert s.status_text == "Online"
        s.is_online = False
        assert s.status_text == "Offline"

    def test_last_status_check(self) -> None:
        s = Server(domain="example.com")
        assert s.last_status_check is None
        s = append_check(s, _result(1))
        s = append_check(s, _result(2))
        assert s.last_status_check == s.status_history[-1]

    def test_copy_is_independent(self) -> None:
        s = append_check(Server(domain="example.com"), _result(0))
        c = s.copy()
        c.status_history.append(_result(1))
        assert len(s.status_history) == 1


class TestCheckResult:
    def test_offline_factory(self) -> None:
        r = CheckResult.offline("Could not connect to the server")
        assert r.status_code == 0
        assert r.is_online is False
        assert r.message == "Could not connect to the server"

    def test_auto_id_and_timestamp(self) -> None:
        r = CheckResult(status_code=200, is_online=True)
        assert r.id
        assert r.timestamp.tzinfo is not None

    def test_message_not_part_of_equality(self) -> None:
        a = CheckResult(status_code=200, is_online=True, id="x", timestamp=T0, message="hello")
        b = CheckResult(status_code=200, is_online=True, id="x", timestamp=T0)
        assert a == b

    def test_auto_check_defaults(self) -> None:
        c = AutoCheckConfig()
        assert c.enabled is False
        assert c.interval_minutes == 5


# ── History ──────────────────────────────────────────────────────────────────


class TestAppendCheck:
    def test_appends_at_tail(self) -> None:
        s = Server(domain="example.com")
        s = append_check(s, _result(1))
        s = append_check(s, _result(2))
        assert [r.timestamp for r in s.status_history] == [T0 + timedelta(minutes=1), T0 + timedelta(minutes=2)]

    def test_input_not_mutated(self) -> None:
        s = Server(domain="example.com")
        updated = append_check(s, _result(1))
        assert s.status_history == []
        assert len(updated.status_history) == 1
        assert updated.id == s.id

    def test_exactly_at_limit_keeps_all(self) -> None:
        s = Server(domain="example.com")
        for i in range(HISTORY_LIMIT):
            s = append_check(s, _result(i))
        assert len(s.status_history) == HISTORY_LIMIT
        assert s.status_history[0].timestamp == T0

    def test_overflow_keeps_most_recent_in_order(self) -> None:
        s = Server(domain="example.com")
        results = [_result(i) for i in range(250)]
        for r in results:
            s = append_check(s, r)
        assert len(s.status_history) == HISTORY_LIMIT
        assert s.status_history == results[-HISTORY_LIMIT:]
        stamps = [r.timestamp for r in s.status_history]
        assert stamps == sorted(stamps)

    def test_custom_limit(self) -> None:
        s = Server(domain="example.com")
        for i in range(5):
            s = append_check(s, _result(i), limit=3)
        assert [r.timestamp.minute for r in s.status_history] == [2, 3, 4]


# ── Classification ───────────────────────────────────────────────────────────


class TestClassify:
    def test_2xx_online(self) -> None:
        assert classify(200)
        assert classify(204)
        assert classify(299)

    def test_outside_2xx_offline(self) -> None:
        assert not classify(199)
        assert not classify(301)
        assert not classify(404)
        assert not classify(500)
        assert not classify(0)

    def test_expected_code_match(self) -> None:
        assert classify(404, expected_status_code=404)
        assert not classify(200, expected_status_code=404)
