"""Administrator commands received over the messaging channel."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence

import structlog

from ..event_log import EventLog
from ..health.status import HealthStatus
from ..housekeeping.janitor import FileJanitor
from ..notifications.telegram_bot import MessageChannel
from ..recovery.supervisor import ProcessSupervisor

logger = structlog.get_logger(__name__)

HELP_TEXT = (
    "Available commands:\n"
    "/status - API state, uptime and counters\n"
    "/restart - kill and relaunch the API process\n"
    "/clean - delete unreferenced images now\n"
    "/logs - last entries of the event log\n"
    "/help - this list"
)


class CommandRouter:
    """Dispatches ``/status``, ``/restart``, ``/clean``, ``/logs`` and ``/help``.

    Only senders in the roster are answered; anything else, including unknown
    text from an administrator, gets no reply.
    """

    def __init__(
        self,
        channel: MessageChannel,
        roster: Sequence[str],
        status: HealthStatus,
        janitor: FileJanitor,
        supervisor: ProcessSupervisor,
        event_log: EventLog,
        *,
        settle_seconds: float = 3.0,
        logs_tail_lines: int = 15,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.channel = channel
        self.roster = frozenset(roster)
        self.status = status
        self.janitor = janitor
        self.supervisor = supervisor
        self.event_log = event_log
        self.settle_seconds = settle_seconds
        self.logs_tail_lines = logs_tail_lines
        self._sleep = sleep
        self._commands: dict[str, Callable[[str], Awaitable[Optional[str]]]] = {
            "/status": self._status,
            "/restart": self._restart,
            "/clean": self._clean,
            "/logs": self._logs,
            "/help": self._help,
        }

    async def handle(self, sender: str, text: str) -> Optional[str]:
        """Handle one inbound message. Returns the final reply, if any."""
        if sender not in self.roster:
            logger.debug("Ignoring message from unauthorized sender", chat_id=sender)
            return None

        command = (text or "").strip().lower()
        action = self._commands.get(command)
        if action is None:
            return None

        logger.info("Command received", chat_id=sender, command=command)
        try:
            reply = await action(sender)
        except Exception:
            logger.exception("Command failed", chat_id=sender, command=command)
            return None

        if reply is not None:
            await self._reply(sender, reply)
        return reply

    async def _reply(self, sender: str, text: str) -> None:
        try:
            await self.channel.send(sender, text)
        except Exception as e:
            logger.error("Failed to reply", chat_id=sender, error=str(e))

    async def _status(self, sender: str) -> str:
        hours = self.status.uptime(datetime.now()).total_seconds() / 3600.0
        return (
            "STATUS\n\n"
            f"API: {self.status.label}\n"
            f"Bot uptime: {hours:.2f}h\n"
            f"Outages: {self.status.total_outages}\n"
            f"Cleanup: {self.status.images_cleaned_today} images"
        )

    async def _restart(self, sender: str) -> str:
        await self._reply(sender, "Restarting API processes...")
        self.event_log.record("Manual restart requested")
        self.supervisor.kill_all_managed()
        await self._sleep(self.settle_seconds)
        self.supervisor.restart()
        return "API relaunched."

    async def _clean(self, sender: str) -> str:
        deleted = await self.janitor.clean()
        return f"Manual cleanup finished. Deleted: {deleted}"

    async def _logs(self, sender: str) -> str:
        lines = await asyncio.to_thread(self.event_log.tail, self.logs_tail_lines)
        body = "\n".join(lines) if lines else "(log is empty)"
        return f"Latest log entries:\n\n{body}"

    async def _help(self, sender: str) -> str:
        return HELP_TEXT
