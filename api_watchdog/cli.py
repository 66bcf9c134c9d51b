"""Command line entry point for the API watchdog.

Usage:
    python main.py                       # Run the watchdog until SIGINT/SIGTERM
    python main.py --once                # One health check, exit 0 if healthy
    python main.py --config my.yaml      # Use a specific YAML config
    python -m api_watchdog --log-level DEBUG
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys

import structlog
import uvicorn

from .api import create_app
from .config import load_config
from .errors import ConfigError
from .scheduler.coordinator import WatchdogCoordinator


logger = structlog.get_logger(__name__)


def configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Avoid leaking secrets (the Telegram token is embedded in the Bot API URL).
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def run(coordinator: WatchdogCoordinator) -> int:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt.
            pass

    server_task = None
    await coordinator.start()
    if coordinator.config.status_port > 0:
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(coordinator),
                host="127.0.0.1",
                port=coordinator.config.status_port,
                log_level="warning",
            )
        )
        server_task = asyncio.create_task(server.serve())
        logger.info("Status API listening", port=coordinator.config.status_port)

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down")
        if server_task is not None:
            server.should_exit = True
            await server_task
        await coordinator.stop()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Watchdog for a self-hosted HTTP API")
    parser.add_argument("--config", default=None, help="Path to YAML config (default: $WATCHDOG_CONFIG)")
    parser.add_argument("--once", action="store_true", help="Run one health check and exit")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (INFO, WARNING, ...); overrides the config",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(args.log_level or os.getenv("LOG_LEVEL") or config.log_level)

    try:
        coordinator = WatchdogCoordinator(config)
    except ConfigError as e:
        logger.error("Invalid configuration", error=str(e))
        return 2

    if args.once:
        result = asyncio.run(coordinator.run_once())
        print(json.dumps(result, indent=2, default=str))
        return 0 if result["outcome"]["ok"] else 1

    try:
        return asyncio.run(run(coordinator))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
