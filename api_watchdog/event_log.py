"""Operator-facing event log: one timestamped line per event."""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class EventLog:
    """Append-only event file, mirrored to the console through structlog.

    ``/logs`` reads this file back, so lines are plain text rather than
    structured records.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create event log directory", path=str(self.path.parent), error=str(e))

    def record(self, message: str) -> str:
        """Append ``[timestamp] message``. Never raises."""
        line = f"[{datetime.now().strftime(TIMESTAMP_FORMAT)}] {message}"
        try:
            with self._lock, open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error("Failed to write event log", path=str(self.path), error=str(e))
        logger.info(message)
        return line

    def tail(self, lines: int = 15) -> list[str]:
        """Last ``lines`` non-empty lines of the file, oldest first."""
        if lines <= 0 or not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            last = deque((line.rstrip("\n") for line in f if line.strip()), maxlen=lines)
        return list(last)
