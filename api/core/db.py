"""
Async database access (raw SQL) using asyncpg.

`Database` wraps one connection pool and is created explicitly: the app's
lifespan opens it on startup and closes it on shutdown (see `api/main.py`),
and route handlers receive it through the `get_database` dependency. Tests can
hand in any pool-like object with awaitable `acquire(timeout=...)`,
`release(conn)` and `close()`.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg
from fastapi import Request

from . import errors
from .config import Settings

logger = logging.getLogger("users_api.db")


class Database:
    def __init__(
        self,
        pool: Any,
        *,
        acquire_timeout: float | None = None,
        secrets: tuple[str, ...] = (),
    ) -> None:
        self._pool = pool
        self._acquire_timeout = acquire_timeout
        self._secrets = tuple(s for s in secrets if s)
        self._leased = 0

    @classmethod
    async def connect(cls, settings: Settings) -> "Database":
        # min_size=0: no connection is opened here, so an unreachable database
        # shows up as a ConnectivityError on the first request, not a crash.
        pool = await asyncpg.create_pool(
            min_size=0,
            max_size=settings.pool_size,
            command_timeout=settings.command_timeout,
            **settings.connect_kwargs(),
        )
        logger.info(f"Database pool created (max_size={settings.pool_size})")
        return cls(
            pool,
            acquire_timeout=settings.pool_acquire_timeout,
            secrets=settings.secrets(),
        )

    @property
    def leased(self) -> int:
        """Number of connections currently checked out through `connection()`."""
        return self._leased

    def redact(self, message: str) -> str:
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message

    async def _acquire(self) -> Any:
        try:
            return await self._pool.acquire(timeout=self._acquire_timeout)
        except asyncio.TimeoutError as exc:
            raise errors.PoolExhaustedError(
                f"Error connecting to database: no connection available after {self._acquire_timeout}s"
            ) from exc
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise errors.ConnectivityError(
                f"Error connecting to database: {self.redact(str(exc))}"
            ) from exc

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        """
        Lease a connection for the enclosing block.

        The connection goes back to the pool exactly once, whatever way the
        block exits.
        """
        conn = await self._acquire()
        self._leased += 1
        try:
            yield conn
        finally:
            self._leased -= 1
            await self._pool.release(conn)

    async def close(self) -> None:
        await self._pool.close()
        logger.info("Database pool closed")


def get_database(request: Request) -> Database:
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise errors.ConnectivityError("Error connecting to database: pool is not initialized")
    return database
