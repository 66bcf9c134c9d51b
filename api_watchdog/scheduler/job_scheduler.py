"""Job scheduling for the watchdog's periodic tasks."""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger


logger = structlog.get_logger(__name__)


class JobScheduler:
    """Manages scheduled jobs using APScheduler.

    Jobs are described by interval or by wall-clock time; callers never deal
    with cron expressions. Each job allows a single running instance, so a
    slow run makes the scheduler skip the next tick instead of overlapping.
    """

    def __init__(self, timezone: Optional[str] = None):
        scheduler_kwargs: Dict[str, Any] = {
            "job_defaults": {"max_instances": 1, "coalesce": True, "misfire_grace_time": 60},
        }
        if timezone:
            scheduler_kwargs["timezone"] = timezone
        self.scheduler = AsyncIOScheduler(**scheduler_kwargs)
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.running = False

    async def start(self):
        """Start the job scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        self.running = True
        logger.info("Job scheduler started")

    async def stop(self):
        """Stop the job scheduler."""
        if not self.running:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Job scheduler stopped")

    def add_interval_job(
        self,
        job_id: str,
        func: Callable,
        seconds: float,
        description: Optional[str] = None,
    ):
        """Run ``func`` every ``seconds``."""
        self._add_job(
            job_id,
            func,
            IntervalTrigger(seconds=seconds),
            description,
            {"type": "interval", "seconds": seconds},
        )

    def add_daily_job(
        self,
        job_id: str,
        func: Callable,
        hour: int,
        minute: int = 0,
        description: Optional[str] = None,
    ):
        """Run ``func`` every day at ``hour:minute`` local time."""
        self._add_job(
            job_id,
            func,
            CronTrigger(hour=hour, minute=minute, timezone=self.scheduler.timezone),
            description,
            {"type": "daily", "at": f"{hour:02d}:{minute:02d}"},
        )

    def add_weekly_job(
        self,
        job_id: str,
        func: Callable,
        day_of_week: str,
        hour: int,
        minute: int = 0,
        description: Optional[str] = None,
    ):
        """Run ``func`` once a week on ``day_of_week`` (``mon``..``sun``) at ``hour:minute``."""
        self._add_job(
            job_id,
            func,
            CronTrigger(day_of_week=day_of_week, hour=hour, minute=minute, timezone=self.scheduler.timezone),
            description,
            {"type": "weekly", "at": f"{day_of_week} {hour:02d}:{minute:02d}"},
        )

    def _add_job(
        self,
        job_id: str,
        func: Callable,
        trigger: Any,
        description: Optional[str],
        info: Dict[str, Any],
    ):
        if job_id in self.jobs:
            logger.warning("Job already exists, replacing", job_id=job_id)
            self.remove_job(job_id)

        job = self.scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=description or job_id,
        )

        self.jobs[job_id] = {
            "job": job,
            "description": description,
            "added_at": datetime.now(),
            **info,
        }

        logger.info("Added job", job_id=job_id, description=description, **info)

    def remove_job(self, job_id: str) -> bool:
        """Remove a scheduled job."""
        if job_id not in self.jobs:
            logger.warning("Job not found", job_id=job_id)
            return False

        try:
            self.scheduler.remove_job(job_id)
            del self.jobs[job_id]
            logger.info("Removed job", job_id=job_id)
            return True
        except Exception as e:
            logger.error("Failed to remove job", job_id=job_id, error=str(e))
            return False

    def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Get status information for a job."""
        if job_id not in self.jobs:
            return None

        job_info = self.jobs[job_id]
        scheduler_job = self.scheduler.get_job(job_id)

        if scheduler_job is None:
            return None

        next_run = getattr(scheduler_job, "next_run_time", None)
        return {
            "job_id": job_id,
            "name": scheduler_job.name,
            "type": job_info["type"],
            "next_run": next_run.isoformat() if next_run else None,
            "added_at": job_info["added_at"].isoformat(),
            "description": job_info.get("description"),
        }

    def list_jobs(self) -> List[Dict[str, Any]]:
        """List all scheduled jobs."""
        job_statuses = []
        for job_id in self.jobs:
            status = self.get_job_status(job_id)
            if status:
                job_statuses.append(status)

        return job_statuses

    async def run_job_once(self, job_id: str) -> bool:
        """Run a scheduled job immediately (one-time execution)."""
        if job_id not in self.jobs:
            logger.warning("Job not found", job_id=job_id)
            return False

        try:
            scheduler_job = self.scheduler.get_job(job_id)
            if scheduler_job is None:
                logger.error("Scheduler job not found", job_id=job_id)
                return False

            if asyncio.iscoroutinefunction(scheduler_job.func):
                await scheduler_job.func(*scheduler_job.args, **scheduler_job.kwargs)
            else:
                scheduler_job.func(*scheduler_job.args, **scheduler_job.kwargs)

            logger.info("Executed job manually", job_id=job_id)
            return True

        except Exception as e:
            logger.error("Failed to execute job", job_id=job_id, error=str(e))
            return False
