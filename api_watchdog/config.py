"""Configuration management for the watchdog."""

import os
import re
import sys
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError


_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")


def default_reboot_command() -> str:
    """Delayed OS reboot for the current platform."""
    if sys.platform.startswith("win"):
        return "shutdown /r /t 10"
    return "shutdown -r +1"


def parse_admin_ids(raw: Optional[str]) -> list[str]:
    """Split a comma-separated roster, dropping blanks and duplicates."""
    roster: list[str] = []
    for part in (raw or "").split(","):
        chat_id = part.strip().lstrip("+")
        if chat_id and chat_id not in roster:
            roster.append(chat_id)
    return roster


def parse_interval_ms(raw: Optional[str]) -> Optional[int]:
    """Read the leading integer of ``raw`` (``"5000ms"`` is 5000).

    Returns None for a missing, non-numeric, zero or negative value so the
    default interval applies.
    """
    match = _LEADING_INT_RE.match(raw or "")
    if match is None:
        return None
    value = int(match.group(0))
    return value if value > 0 else None


def parse_hhmm(value: str) -> tuple[int, int]:
    s = str(value or "").strip()
    if ":" not in s:
        raise ValueError(f"Invalid time (expected HH:MM): {value!r}")
    hh_str, mm_str = s.split(":", 1)
    hour, minute = int(hh_str), int(mm_str)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time (expected HH:MM): {value!r}")
    return hour, minute


class WatchdogConfig(BaseModel):
    """Main configuration for the watchdog."""

    # Monitored API
    api_url: str = Field(default="http://localhost:3000", description="Base URL of the monitored API")
    health_path: str = Field(default="/banners", description="Path probed on every health check")
    request_timeout_seconds: float = Field(default=8.0, description="Health check timeout in seconds")
    check_interval_ms: int = Field(default=60000, description="Health check interval in milliseconds")
    failure_threshold: int = Field(default=3, description="Consecutive failures before host reboot")
    escalate_once: bool = Field(default=False, description="Reboot the host at most once per outage")

    # Process control
    api_path: str = Field(default=".", description="Working directory of the monitored API")
    api_start_command: str = Field(default="npm start", description="Command that starts the API")
    managed_process_name: str = Field(default="node", description="Executable name killed by /restart")
    reboot_command: str = Field(default_factory=default_reboot_command, description="Delayed reboot command")
    restart_settle_seconds: float = Field(default=3.0, description="Pause between kill and relaunch")
    dry_run: bool = Field(default=False, description="Log process commands instead of running them")

    # Housekeeping
    images_dir: str = Field(default="images", description="Directory holding uploaded images")
    pairing_image_name: str = Field(default="telegram_qr.png", description="File the janitor never deletes")
    database_url: Optional[str] = Field(default=None, description="DSN of the database holding references")
    references_table: str = Field(default="banners", description="Table holding image references")
    references_column: str = Field(default="imagen", description="Column holding image filenames")

    # Messaging
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    admin_chat_ids: list[str] = Field(default_factory=list, description="Administrator chat ids")

    # Logging
    log_file: str = Field(default="logs/monitor.log", description="Operator event log")
    log_level: str = Field(default="INFO", description="Logging level")
    logs_tail_lines: int = Field(default=15, description="Lines returned by /logs")

    # Scheduling
    daily_report_time: str = Field(default="20:00", description="Local time of the daily report")
    weekly_cleanup_day: str = Field(default="mon", description="Weekday of the unattended cleanup")
    weekly_cleanup_time: str = Field(default="03:00", description="Local time of the unattended cleanup")
    timezone: Optional[str] = Field(default=None, description="Scheduler timezone (empty = local)")

    # Status API
    status_port: int = Field(default=0, description="Port of the status API (0 disables it)")

    @field_validator("admin_chat_ids", mode="before")
    @classmethod
    def _coerce_chat_ids(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_admin_ids(value)
        if isinstance(value, (list, tuple)):
            return parse_admin_ids(",".join(str(v) for v in value))
        return value

    @field_validator("references_table", "references_column")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"Not a SQL identifier: {value!r}")
        return value

    @field_validator("daily_report_time", "weekly_cleanup_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        parse_hhmm(value)
        return value

    @field_validator("weekly_cleanup_day")
    @classmethod
    def _check_weekday(cls, value: str) -> str:
        day = value.strip().lower()[:3]
        if day not in _WEEKDAYS:
            raise ValueError(f"Invalid weekday: {value!r}")
        return day

    @field_validator("check_interval_ms", "failure_threshold", "logs_tail_lines")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @property
    def health_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/{self.health_path.lstrip('/')}"

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000.0


def load_config(config_path: Optional[str] = None) -> WatchdogConfig:
    """Load configuration from file or environment variables."""
    load_dotenv()

    if config_path is None:
        config_path = os.getenv("WATCHDOG_CONFIG", "config/watchdog.yaml")

    config_data: Dict[str, Any] = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config YAML must be a mapping: {config_path}")
        config_data.update(loaded)

    # Override with environment variables
    env_overrides = {
        "api_url": os.getenv("API_URL"),
        "health_path": os.getenv("HEALTH_PATH"),
        "api_path": os.getenv("API_PATH"),
        "api_start_command": os.getenv("API_START_COMMAND"),
        "managed_process_name": os.getenv("MANAGED_PROCESS_NAME"),
        "reboot_command": os.getenv("REBOOT_COMMAND"),
        "images_dir": os.getenv("IMAGES_BASE_DIR"),
        "pairing_image_name": os.getenv("QR_FILE_NAME"),
        "check_interval_ms": os.getenv("CHECK_INTERVAL"),
        "admin_chat_ids": os.getenv("ADMIN_CHAT_IDS"),
        "telegram_bot_token": os.getenv("TELEGRAM_BOT_TOKEN"),
        "database_url": os.getenv("DATABASE_URL"),
        "log_file": os.getenv("LOG_FILE"),
        "log_level": os.getenv("LOG_LEVEL"),
        "status_port": os.getenv("STATUS_PORT"),
        "dry_run": os.getenv("WATCHDOG_DRY_RUN"),
    }

    # Filter out None values and convert types
    for key, value in env_overrides.items():
        if value is None or value == "":
            continue
        if key == "check_interval_ms":
            value = parse_interval_ms(value)
            if value is None:
                continue
        elif key == "status_port":
            try:
                value = int(value)
            except ValueError:
                raise ConfigError(f"{key} must be an integer, got {value!r}")
        elif key == "dry_run":
            value = value.lower() in ("true", "1", "yes")
        elif key == "admin_chat_ids":
            value = parse_admin_ids(value)
        config_data[key] = value

    try:
        return WatchdogConfig(**config_data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

