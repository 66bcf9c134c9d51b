"""Main entry point for the API watchdog."""

from api_watchdog.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
