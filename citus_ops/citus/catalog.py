"""Citus node-membership catalog (``pg_dist_node``) commands.

All values are passed as bind parameters; nothing read from configuration
is ever formatted into SQL text.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol, Self

import asyncpg
from pydantic import BaseModel, ConfigDict

from ..infrastructure.postgres import CatalogError, NodeClient
from ..logger import get_logger

logger = get_logger(__name__)

CREATE_EXTENSION_SQL = "CREATE EXTENSION IF NOT EXISTS citus"
NODE_EXISTS_SQL = "SELECT 1 FROM pg_dist_node WHERE nodename = $1 AND nodeport = $2 LIMIT 1"
LIST_NODES_SQL = "SELECT DISTINCT nodename, nodeport FROM pg_dist_node ORDER BY nodename, nodeport"
REMOVE_NODE_SQL = "DELETE FROM pg_dist_node WHERE nodename = $1"
ADD_NODE_SQL = "SELECT citus_add_node($1, $2)"
VERSION_SQL = "SELECT citus_version()"
ACTIVE_WORKERS_SQL = "SELECT node_name, node_port FROM citus_get_active_worker_nodes() ORDER BY node_name, node_port"
DISTRIBUTED_TABLES_SQL = (
    "SELECT table_name::text AS table_name, citus_table_type, distribution_column FROM citus_tables ORDER BY table_name"
)

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError)


class RegisteredNode(BaseModel):
    """A ``(nodename, nodeport)`` pair as stored in the catalog."""

    model_config = ConfigDict(frozen=True)

    nodename: str
    nodeport: int


class DistributedTable(BaseModel):
    """A row of ``citus_tables``; reference tables have no distribution column."""

    model_config = ConfigDict(frozen=True)

    table_name: str
    citus_table_type: str
    distribution_column: str | None = None


class NodeCatalog(Protocol):
    """What the registration reconciler needs from a node's catalog."""

    @property
    def target(self) -> str: ...

    def for_node(self, host: str, port: int) -> Self: ...

    async def anode_exists(self, host: str, port: int) -> bool: ...

    async def alist_nodes(self) -> tuple[RegisteredNode, ...]: ...

    async def aremove_node(self, host: str) -> None: ...

    async def aadd_node(self, host: str, port: int) -> int: ...


class CitusCatalog:
    """Catalog commands against one node, usually the coordinator.

    Every method raises `CatalogError` when the driver or the server fails.
    """

    __slots__ = ("_client",)

    def __init__(self, client: NodeClient) -> None:
        self._client = client

    def __repr__(self) -> str:
        return f"CitusCatalog({self.target})"

    @property
    def client(self) -> NodeClient:
        return self._client

    @property
    def target(self) -> str:
        return self._client.settings.target

    def for_node(self, host: str, port: int) -> Self:
        """Catalog of another node, reached with the same credentials and database."""
        return type(self)(NodeClient(self._client.settings.for_host(host, port)))

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except _DRIVER_ERRORS as e:
            raise CatalogError(operation, self.target, e) from e

    async def aensure_extension(self) -> None:
        with self._translate_errors("create extension"):
            await self._client.aexecute(CREATE_EXTENSION_SQL)

    async def anode_exists(self, host: str, port: int) -> bool:
        with self._translate_errors("node lookup"):
            return await self._client.afetchval(NODE_EXISTS_SQL, host, port) == 1

    async def alist_nodes(self) -> tuple[RegisteredNode, ...]:
        with self._translate_errors("list nodes"):
            rows = await self._client.afetch(LIST_NODES_SQL)
        return tuple(RegisteredNode(nodename=row["nodename"], nodeport=row["nodeport"]) for row in rows)

    async def aremove_node(self, host: str) -> None:
        """Forget every catalog entry for ``host`` on this node."""
        with self._translate_errors("remove node"):
            status = await self._client.aexecute(REMOVE_NODE_SQL, host)
        logger.debug("Removed catalog entries", target=self.target, host=host, status=status)

    async def aadd_node(self, host: str, port: int) -> int:
        """Register a worker and return the node id Citus assigned to it."""
        with self._translate_errors("add node"):
            return int(await self._client.afetchval(ADD_NODE_SQL, host, port))

    async def aversion(self) -> str | None:
        with self._translate_errors("citus version"):
            return await self._client.afetchval(VERSION_SQL)

    async def aactive_workers(self) -> tuple[RegisteredNode, ...]:
        with self._translate_errors("active workers"):
            rows = await self._client.afetch(ACTIVE_WORKERS_SQL)
        return tuple(RegisteredNode(nodename=row["node_name"], nodeport=row["node_port"]) for row in rows)

    async def adistributed_tables(self) -> tuple[DistributedTable, ...]:
        with self._translate_errors("distributed tables"):
            rows = await self._client.afetch(DISTRIBUTED_TABLES_SQL)
        return tuple(
            DistributedTable(
                table_name=row["table_name"],
                citus_table_type=row["citus_table_type"],
                distribution_column=None if row["distribution_column"] in (None, "<none>") else row["distribution_column"],
            )
            for row in rows
        )
