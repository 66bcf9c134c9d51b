from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from api_watchdog.event_log import EventLog
from api_watchdog.health.status import HealthStatus
from api_watchdog.notifications.telegram_bot import Notifier
from api_watchdog.recovery.supervisor import ActionResult

ADMINS = ("1001", "1002")


class FakeChannel:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing = set(failing or ())

    async def send(self, address: str, text: str) -> None:
        if address in self.failing:
            raise RuntimeError(f"chat {address} is unreachable")
        self.sent.append((address, text))

    def texts_for(self, address: str) -> list[str]:
        return [text for addr, text in self.sent if addr == address]


class FakeSupervisor:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def restart(self) -> ActionResult:
        self.calls.append("restart")
        return ActionResult("restart", True)

    def restart_host(self) -> ActionResult:
        self.calls.append("restart_host")
        return ActionResult("restart_host", True)

    def kill_all_managed(self) -> ActionResult:
        self.calls.append("kill_all_managed")
        return ActionResult("kill_all_managed", True)


class FakeStore:
    def __init__(self, referenced: set[str] | None = None, error: Exception | None = None) -> None:
        self.referenced = set(referenced or ())
        self.error = error

    async def fetch_referenced(self) -> set[str]:
        if self.error is not None:
            raise self.error
        return set(self.referenced)

    async def close(self) -> None:
        return None


class ManualClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 5, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def notifier(channel: FakeChannel) -> Notifier:
    return Notifier(channel, ADMINS)


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def status() -> HealthStatus:
    return HealthStatus()


@pytest.fixture
def event_log(tmp_path: Path) -> EventLog:
    return EventLog(tmp_path / "logs" / "monitor.log")
