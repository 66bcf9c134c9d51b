"""Wires the watchdog components together and owns their lifecycle."""

import asyncio
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import structlog

from ..config import WatchdogConfig, parse_hhmm
from ..commands.router import CommandRouter
from ..errors import ConfigError
from ..event_log import EventLog
from ..health.monitor import HealthMonitor
from ..health.status import HealthStatus
from ..housekeeping.janitor import FileJanitor
from ..housekeeping.reference_store import (
    PostgresReferenceStore,
    ReferenceSource,
    UnconfiguredReferenceStore,
)
from ..notifications.pairing import render_pairing_qr
from ..notifications.telegram_bot import Notifier, TelegramChannel
from ..recovery.supervisor import ProcessSupervisor
from ..reporting.daily_report import DailyReporter
from .job_scheduler import JobScheduler


logger = structlog.get_logger(__name__)

HEALTH_JOB_ID = "health_check"
DAILY_REPORT_JOB_ID = "daily_report"
WEEKLY_CLEANUP_JOB_ID = "weekly_cleanup"


def _log_poll_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Command polling stopped", error=f"{type(exc).__name__}: {exc}")


class WatchdogCoordinator:
    """Builds the components from config and runs them on one event loop."""

    def __init__(
        self,
        config: WatchdogConfig,
        *,
        channel: Optional[TelegramChannel] = None,
        store: Optional[ReferenceSource] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.status = HealthStatus()
        self.event_log = EventLog(config.log_file)

        if channel is None:
            if not config.telegram_bot_token:
                raise ConfigError("TELEGRAM_BOT_TOKEN is not configured")
            channel = TelegramChannel(config.telegram_bot_token)
        self.channel = channel

        if store is None:
            if config.database_url:
                store = PostgresReferenceStore(
                    config.database_url, config.references_table, config.references_column
                )
            else:
                logger.warning("DATABASE_URL not configured; image cleanup is disabled")
                store = UnconfiguredReferenceStore()
        self.store = store

        self.supervisor = supervisor or ProcessSupervisor(
            self.event_log,
            api_path=config.api_path,
            start_command=config.api_start_command,
            managed_process_name=config.managed_process_name,
            reboot_command=config.reboot_command,
            dry_run=config.dry_run,
        )
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()

        self.notifier = Notifier(self.channel, config.admin_chat_ids)
        self.monitor = HealthMonitor(
            self.status,
            self.notifier,
            self.supervisor,
            self.event_log,
            self.client,
            url=config.health_url,
            timeout_seconds=config.request_timeout_seconds,
            failure_threshold=config.failure_threshold,
            escalate_once=config.escalate_once,
        )
        self.janitor = FileJanitor(
            self.store,
            self.status,
            self.event_log,
            images_dir=Path(config.images_dir),
            protected_name=config.pairing_image_name,
        )
        self.router = CommandRouter(
            self.channel,
            config.admin_chat_ids,
            self.status,
            self.janitor,
            self.supervisor,
            self.event_log,
            settle_seconds=config.restart_settle_seconds,
            logs_tail_lines=config.logs_tail_lines,
        )
        self.reporter = DailyReporter(self.status, self.notifier, self.event_log)
        self.scheduler = JobScheduler(timezone=config.timezone)
        self.pairing_link: Optional[str] = None
        self._poll_task: Optional[asyncio.Task] = None

    async def start(self):
        """Connect the channel, then start the scheduled jobs and command polling."""
        self.pairing_link = await self.channel.start()
        self.event_log.record(f"Watchdog ONLINE (open {self.pairing_link} to chat with the bot)")
        await asyncio.to_thread(
            render_pairing_qr,
            self.pairing_link,
            Path(self.config.images_dir) / self.config.pairing_image_name,
            self.event_log,
        )

        self._setup_jobs()
        await self.scheduler.start()
        self._poll_task = asyncio.create_task(self.channel.poll(self.router.handle))
        self._poll_task.add_done_callback(_log_poll_exit)
        logger.info("Watchdog coordinator started", health_url=self.config.health_url)

    async def run_once(self) -> Dict[str, Any]:
        """Run a single health check and report its outcome."""
        await self.channel.start()
        try:
            outcome = await self.monitor.check_once()
        finally:
            await self.channel.stop()
            await self.store.close()
            if self._owns_client:
                await self.client.aclose()
        return {"outcome": asdict(outcome), "health": self.status.as_dict()}

    async def stop(self):
        """Stop polling, the scheduler and the shared clients."""
        await self.scheduler.stop()
        if self._poll_task is not None:
            if not self._poll_task.done():
                self._poll_task.cancel()
                try:
                    await self._poll_task
                except asyncio.CancelledError:
                    pass
            self._poll_task = None
        await self.channel.stop()
        await self.store.close()
        if self._owns_client:
            await self.client.aclose()
        logger.info("Watchdog coordinator stopped")

    def _setup_jobs(self):
        self.scheduler.add_interval_job(
            job_id=HEALTH_JOB_ID,
            func=self.monitor.check_once,
            seconds=self.config.check_interval_seconds,
            description="Health check of the monitored API",
        )

        report_hour, report_minute = parse_hhmm(self.config.daily_report_time)
        self.scheduler.add_daily_job(
            job_id=DAILY_REPORT_JOB_ID,
            func=self.run_daily_report,
            hour=report_hour,
            minute=report_minute,
            description="Daily report to administrators",
        )

        cleanup_hour, cleanup_minute = parse_hhmm(self.config.weekly_cleanup_time)
        self.scheduler.add_weekly_job(
            job_id=WEEKLY_CLEANUP_JOB_ID,
            func=self.run_weekly_cleanup,
            day_of_week=self.config.weekly_cleanup_day,
            hour=cleanup_hour,
            minute=cleanup_minute,
            description="Unattended image cleanup",
        )

    async def run_daily_report(self):
        try:
            await self.reporter.send_daily_report()
        except Exception:
            logger.exception("Daily report failed")

    async def run_weekly_cleanup(self):
        try:
            await self.janitor.clean()
        except Exception:
            logger.exception("Weekly cleanup failed")

    def get_status(self) -> Dict[str, Any]:
        """Status snapshot for the HTTP status API."""
        return {
            "health": self.status.as_dict(),
            "health_url": self.config.health_url,
            "check_in_flight": self.monitor.in_flight,
            "scheduler": {
                "running": self.scheduler.running,
                "jobs": self.scheduler.list_jobs(),
            },
        }
