"""Reporting module for the daily summary."""

from .daily_report import DailyReporter, format_daily_report

__all__ = ["DailyReporter", "format_daily_report"]
