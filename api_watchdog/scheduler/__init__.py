"""Scheduler module for orchestrating watchdog tasks."""

from .coordinator import WatchdogCoordinator
from .job_scheduler import JobScheduler

__all__ = ["JobScheduler", "WatchdogCoordinator"]
