"""Health checking of the monitored API."""

from .monitor import CheckOutcome, HealthMonitor
from .status import HealthStatus

__all__ = ["CheckOutcome", "HealthMonitor", "HealthStatus"]
