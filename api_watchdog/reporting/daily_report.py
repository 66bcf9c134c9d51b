"""Daily summary sent to the administrators."""

from datetime import datetime
from typing import Any, Optional

import structlog

from ..event_log import EventLog
from ..health.status import HealthStatus
from ..notifications.telegram_bot import Notifier

logger = structlog.get_logger(__name__)


def format_daily_report(status: HealthStatus, generated_at: Optional[datetime] = None) -> str:
    """Format the daily report text."""
    generated_at = generated_at or datetime.now()
    lines = [
        "DAILY REPORT",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M')}",
        f"- Outages: {status.total_outages}",
        f"- Cleanup: {status.images_cleaned_today} images",
    ]
    if status.is_down:
        lines.append(f"- API is currently DOWN ({status.consecutive_failures} consecutive failures)")
    return "\n".join(lines)


class DailyReporter:
    """Broadcasts the daily report and starts a new cleanup day."""

    def __init__(self, status: HealthStatus, notifier: Notifier, event_log: EventLog):
        self.status = status
        self.notifier = notifier
        self.event_log = event_log

    async def send_daily_report(self) -> dict[str, Any]:
        """Broadcast the report, then reset the daily image counter.

        ``total_outages`` counts since startup and is not reset here.
        """
        message = format_daily_report(self.status)
        snapshot = {
            "total_outages": self.status.total_outages,
            "images_cleaned_today": self.status.images_cleaned_today,
        }
        try:
            await self.notifier.broadcast(message)
        finally:
            self.status.reset_daily_counters()
        self.event_log.record(
            f"Daily report sent (outages={snapshot['total_outages']}, "
            f"images={snapshot['images_cleaned_today']})"
        )
        logger.info("Daily report sent", **snapshot)
        return snapshot
