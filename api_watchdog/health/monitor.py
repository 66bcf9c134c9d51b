"""Health checks against the monitored API, with recovery and escalation."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import httpx
import structlog

from ..event_log import EventLog
from ..notifications.telegram_bot import Notifier
from ..recovery.supervisor import ProcessSupervisor
from .status import HealthStatus

logger = structlog.get_logger(__name__)

DOWN_ALERT = "ALERT: the API is not responding. Trying to restart it..."
ESCALATION_ALERT = "CRITICAL: the API is still down. Rebooting the server..."


@dataclass(frozen=True)
class CheckOutcome:
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed_ms: Optional[float] = None
    transitioned: bool = False
    escalated: bool = False
    skipped: bool = False


async def probe(client: httpx.AsyncClient, url: str, timeout: float) -> tuple[bool, Optional[int], Optional[str]]:
    """One GET against ``url``. Healthy means a 2xx answer within ``timeout``."""
    try:
        resp = await client.get(url, timeout=timeout)
    except httpx.TimeoutException as e:
        return False, None, f"timeout after {timeout:g}s ({type(e).__name__})"
    except httpx.RequestError as e:
        return False, None, f"{type(e).__name__}: {e}"

    if resp.is_success:
        return True, resp.status_code, None
    return False, resp.status_code, f"HTTP {resp.status_code}"


def format_recovery_message(downtime_minutes: float) -> str:
    return f"API RECOVERED after {downtime_minutes:.1f} min."


class HealthMonitor:
    """UP/DOWN state machine for the monitored API.

    Starts UP. The first failure moves to DOWN, alerts the administrators and
    restarts the API process once. Every failure at or past
    ``failure_threshold`` asks for a host reboot; with ``escalate_once`` only
    the first one per outage does. A 2xx answer moves back to UP.
    """

    def __init__(
        self,
        status: HealthStatus,
        notifier: Notifier,
        supervisor: ProcessSupervisor,
        event_log: EventLog,
        client: httpx.AsyncClient,
        *,
        url: str,
        timeout_seconds: float = 8.0,
        failure_threshold: int = 3,
        escalate_once: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.status = status
        self.notifier = notifier
        self.supervisor = supervisor
        self.event_log = event_log
        self.client = client
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.failure_threshold = max(1, int(failure_threshold))
        self.escalate_once = escalate_once
        self.clock = clock
        self._in_flight = False
        self._escalated_this_outage = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def check_once(self) -> CheckOutcome:
        """Run one poll. Never raises."""
        if self._in_flight:
            logger.warning("Previous health check still running; skipping tick", url=self.url)
            return CheckOutcome(ok=not self.status.is_down, skipped=True)

        self._in_flight = True
        try:
            return await self._check()
        except Exception as e:
            logger.exception("Health check crashed", url=self.url)
            return CheckOutcome(ok=False, error=f"{type(e).__name__}: {e}")
        finally:
            self._in_flight = False

    async def _check(self) -> CheckOutcome:
        started = time.perf_counter()
        ok, status_code, error = await probe(self.client, self.url, self.timeout_seconds)
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 3)

        if ok:
            transitioned = await self._on_success()
            return CheckOutcome(
                ok=True, status_code=status_code, elapsed_ms=elapsed_ms, transitioned=transitioned
            )

        transitioned, escalated = await self._on_failure(error or "unknown error")
        return CheckOutcome(
            ok=False,
            status_code=status_code,
            error=error,
            elapsed_ms=elapsed_ms,
            transitioned=transitioned,
            escalated=escalated,
        )

    async def _on_success(self) -> bool:
        downtime = self.status.mark_success(self.clock())
        if downtime is None:
            return False

        self._escalated_this_outage = False
        minutes = downtime.total_seconds() / 60.0
        self.event_log.record(f"API recovered after {minutes:.1f} min")
        await self.notifier.broadcast(format_recovery_message(minutes))
        return True

    async def _on_failure(self, error: str) -> tuple[bool, bool]:
        went_down = self.status.mark_failure(self.clock(), error)
        failures = self.status.consecutive_failures
        self.event_log.record(f"API failure ({failures}/{self.failure_threshold}): {error}")

        if went_down:
            await self.notifier.broadcast(DOWN_ALERT)
            self.supervisor.restart()

        if failures < self.failure_threshold:
            return went_down, False
        if self.escalate_once and self._escalated_this_outage:
            logger.info("Host reboot already requested for this outage", failures=failures)
            return went_down, False

        self._escalated_this_outage = True
        self.status.escalations += 1
        self.event_log.record(
            f"Critical: {failures} consecutive failures. Rebooting the operating system..."
        )
        await self.notifier.broadcast(ESCALATION_ALERT)
        self.supervisor.restart_host()
        return went_down, True
