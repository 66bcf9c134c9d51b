"""Read-only HTTP status endpoints."""

from typing import Any, Protocol

from fastapi import FastAPI

from . import __version__


class StatusSource(Protocol):
    def get_status(self) -> dict[str, Any]: ...


def create_app(source: StatusSource) -> FastAPI:
    """Build the status API around anything exposing ``get_status()``."""
    app = FastAPI(title="API Watchdog", version=__version__)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "healthy", "service": "api-watchdog"}

    @app.get("/status")
    async def get_status():
        """Current health status and scheduled jobs."""
        return source.get_status()

    return app
