"""Shared health status of the monitored API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any


@dataclass
class HealthStatus:
    """Single-writer status record shared by the monitor, commands and reports.

    Everything runs on one asyncio loop, so there is no lock. Only
    ``HealthMonitor`` calls ``mark_success``/``mark_failure``.

    Invariants:
        * ``consecutive_failures == 0`` whenever ``is_down`` is False
        * ``down_since`` is set iff ``is_down`` is True
        * ``total_outages`` grows by one per up -> down transition
    """

    process_start_time: datetime = field(default_factory=datetime.now)
    is_down: bool = False
    consecutive_failures: int = 0
    down_since: datetime | None = None
    total_outages: int = 0
    images_cleaned_today: int = 0
    escalations: int = 0
    last_check_at: datetime | None = None
    last_error: str | None = None

    def mark_success(self, now: datetime) -> timedelta | None:
        """Record a healthy poll. Returns the downtime if this ends an outage."""
        self.last_check_at = now
        self.last_error = None
        self.consecutive_failures = 0
        if not self.is_down:
            return None

        downtime = now - self.down_since if self.down_since else timedelta(0)
        self.is_down = False
        self.down_since = None
        return max(downtime, timedelta(0))

    def mark_failure(self, now: datetime, error: str | None = None) -> bool:
        """Record a failed poll. Returns True when this failure starts an outage."""
        self.last_check_at = now
        self.last_error = error
        self.consecutive_failures += 1
        if self.is_down:
            return False

        self.is_down = True
        self.down_since = now
        self.total_outages += 1
        return True

    def record_cleanup(self, count: int) -> None:
        self.images_cleaned_today += max(0, int(count))

    def reset_daily_counters(self) -> None:
        # Outages are cumulative; only the image counter is daily.
        self.images_cleaned_today = 0

    def uptime(self, now: datetime | None = None) -> timedelta:
        now = now or datetime.now()
        return max(now - self.process_start_time, timedelta(0))

    @property
    def label(self) -> str:
        return "DOWN" if self.is_down else "UP"

    def as_dict(self, now: datetime | None = None) -> dict[str, Any]:
        return {
            "state": self.label,
            "is_down": self.is_down,
            "consecutive_failures": self.consecutive_failures,
            "down_since": self.down_since.isoformat() if self.down_since else None,
            "total_outages": self.total_outages,
            "images_cleaned_today": self.images_cleaned_today,
            "escalations": self.escalations,
            "uptime_seconds": round(self.uptime(now).total_seconds(), 3),
            "process_start_time": self.process_start_time.isoformat(),
            "last_check_at": self.last_check_at.isoformat() if self.last_check_at else None,
            "last_error": self.last_error,
        }
