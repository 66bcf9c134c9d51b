from __future__ import annotations

from datetime import datetime, timedelta

from api_watchdog.health.status import HealthStatus


def test_transitions_keep_invariants() -> None:
    s = HealthStatus(process_start_time=datetime(2026, 1, 1, 0, 0))
    t0 = datetime(2026, 1, 1, 1, 0)

    assert s.mark_failure(t0, "down") is True
    assert s.mark_failure(t0 + timedelta(minutes=1)) is False
    assert (s.is_down, s.consecutive_failures, s.total_outages, s.down_since) == (True, 2, 1, t0)

    downtime = s.mark_success(t0 + timedelta(minutes=3))
    assert downtime == timedelta(minutes=3)
    assert (s.is_down, s.consecutive_failures, s.down_since) == (False, 0, None)
    assert s.mark_success(t0 + timedelta(minutes=4)) is None
    assert s.total_outages == 1


def test_uptime_is_never_negative() -> None:
    s = HealthStatus(process_start_time=datetime(2030, 1, 1))
    assert s.uptime(datetime(2029, 1, 1)) == timedelta(0)


def test_as_dict_is_json_friendly() -> None:
    s = HealthStatus(process_start_time=datetime(2026, 1, 1))
    s.mark_failure(datetime(2026, 1, 1, 0, 5), "HTTP 502")
    d = s.as_dict(now=datetime(2026, 1, 1, 1, 0))
    assert d["state"] == "DOWN"
    assert d["down_since"] == "2026-01-01T00:05:00"
    assert d["uptime_seconds"] == 3600.0
    assert d["last_error"] == "HTTP 502"
