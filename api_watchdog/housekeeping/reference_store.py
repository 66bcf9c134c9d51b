"""Reads the set of image filenames still referenced by the database."""

from __future__ import annotations

from typing import Protocol

import asyncpg
import structlog

from ..errors import ReferenceStoreError

logger = structlog.get_logger(__name__)


class ReferenceSource(Protocol):
    async def fetch_referenced(self) -> set[str]: ...

    async def close(self) -> None: ...


class PostgresReferenceStore:
    """``SELECT <column> FROM <table>`` over a short-lived asyncpg connection.

    Each fetch opens its own connection and closes it afterwards. Table and
    column are validated as plain identifiers by the config layer and quoted
    here, since they cannot be bound as parameters.
    """

    def __init__(self, dsn: str, table: str, column: str, *, timeout: float = 10.0):
        self.dsn = dsn
        self.table = table
        self.column = column
        self.timeout = timeout

    @property
    def query(self) -> str:
        return f'SELECT "{self.column}" FROM "{self.table}"'

    async def fetch_referenced(self) -> set[str]:
        try:
            conn = await asyncpg.connect(self.dsn, timeout=self.timeout)
            try:
                rows = await conn.fetch(self.query)
            finally:
                await conn.close()
        except (OSError, TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise ReferenceStoreError(f"{type(e).__name__}: {e}") from e

        logger.debug("Fetched referenced filenames", table=self.table, count=len(rows))
        return {str(row[0]) for row in rows if row[0] is not None}

    async def close(self) -> None:
        return None


class UnconfiguredReferenceStore:
    """Used when no database is configured; every janitor run fails safely."""

    async def fetch_referenced(self) -> set[str]:
        raise ReferenceStoreError("DATABASE_URL is not configured")

    async def close(self) -> None:
        return None
