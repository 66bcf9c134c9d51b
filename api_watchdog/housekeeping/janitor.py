"""Deletes uploaded images that no database record references any more."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from ..event_log import EventLog
from ..health.status import HealthStatus
from .reference_store import ReferenceSource

logger = structlog.get_logger(__name__)


def _delete_unreferenced(images_dir: Path, referenced: set[str], protected: str) -> int:
    count = 0
    with os.scandir(images_dir) as entries:
        for entry in entries:
            if not entry.is_file():
                continue
            if entry.name == protected or entry.name in referenced:
                continue
            os.unlink(images_dir / entry.name)
            count += 1
    return count


class FileJanitor:
    """Reconciles the image directory against the referenced filenames.

    A run is best-effort: the first error aborts it and files deleted before
    the error stay deleted.
    """

    def __init__(
        self,
        store: ReferenceSource,
        status: HealthStatus,
        event_log: EventLog,
        *,
        images_dir: str | Path,
        protected_name: str,
    ):
        self.store = store
        self.status = status
        self.event_log = event_log
        self.images_dir = Path(images_dir)
        self.protected_name = protected_name

    async def clean(self) -> int:
        """Delete unreferenced files. Returns the number deleted, 0 on error."""
        self.event_log.record("Starting image cleanup...")
        try:
            referenced = await self.store.fetch_referenced()
            count = await asyncio.to_thread(
                _delete_unreferenced, self.images_dir, referenced, self.protected_name
            )
        except Exception as e:
            self.event_log.record(f"Cleanup error: {e}")
            logger.warning("Image cleanup aborted", images_dir=str(self.images_dir), error=str(e))
            return 0

        self.status.record_cleanup(count)
        self.event_log.record(f"Cleanup finished. Deleted {count} file(s).")
        return count
