"""Short-lived connections to a single PostgreSQL node.

Bootstrap tooling talks to every node of the topology a handful of times and
then exits, so each call opens its own connection and closes it on the way
out instead of keeping a pool around.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import asyncpg
from asyncpg import Connection, Record

from ...logger import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .config import PostgresConnectionSettings

logger = get_logger(__name__)


class NodeClient:
    """Query interface for one PostgreSQL node.

    Examples
    --------
    >>> client = NodeClient(settings)
    >>> if await client.aping():
    ...     await client.afetchval("SELECT citus_version()")
    """

    __slots__ = ("_settings",)

    def __init__(self, settings: PostgresConnectionSettings) -> None:
        self._settings = settings

    def __repr__(self) -> str:
        return f"NodeClient({self._settings.target})"

    @property
    def settings(self) -> PostgresConnectionSettings:
        return self._settings

    @asynccontextmanager
    async def aconnect(self) -> AsyncIterator[Connection[Record]]:
        """Open a connection that is closed when the block exits.

        Yields
        ------
        Connection[Record]
            An open asyncpg connection.
        """
        conn: Connection[Record] = await asyncpg.connect(**self._settings.to_connect_params())
        try:
            yield conn
        finally:
            await conn.close()

    async def aping(self) -> bool:
        """Check whether the server accepts connections.

        Mirrors ``pg_isready``: a server that answers with an authentication
        or missing-database error is up; one that is still starting, refuses
        the TCP connection, or has no DNS record yet is not.

        Returns
        -------
        bool
            True if the server is accepting connections.
        """
        try:
            conn = await asyncpg.connect(**self._settings.to_connect_params())
        except asyncpg.CannotConnectNowError as e:
            logger.debug("Node is starting up", target=self._settings.target, error=str(e))
            return False
        except asyncpg.PostgresError as e:
            logger.debug("Node answered with an error, treating as ready", target=self._settings.target, error=str(e))
            return True
        except (OSError, TimeoutError, asyncpg.InterfaceError) as e:
            logger.debug("Node not reachable", target=self._settings.target, error=f"{type(e).__name__}: {e}")
            return False

        await conn.close()
        return True

    async def aexecute(self, query: str, *args: object, timeout: float | None = None) -> str:
        """Execute a query without returning results.

        Returns
        -------
        str
            Command status string (e.g., "CREATE EXTENSION").
        """
        async with self.aconnect() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def afetch(self, query: str, *args: object, timeout: float | None = None) -> list[Record]:
        """Execute a query and return all rows."""
        async with self.aconnect() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def afetchval(self, query: str, *args: object, timeout: float | None = None) -> Any:
        """Execute a query and return the first column of the first row, or None."""
        async with self.aconnect() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)
