"""Watchdog for a self-hosted HTTP API: health checks, recovery, Telegram alerts."""

__version__ = "0.1.0"
