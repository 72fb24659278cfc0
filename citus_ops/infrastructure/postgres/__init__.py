"""PostgreSQL access with asyncpg.

This module provides:

- `NodeClient`: Short-lived connections to one node of the topology
- `PostgresConnectionSettings`: Connection settings shared by all nodes

Usage
-----
Coordinator and a worker::

    coordinator = NodeClient(settings)
    worker = NodeClient(settings.for_host("pg-worker-0.postgres-worker-headless.default.svc.cluster.local"))
    if await worker.aping():
        await coordinator.afetchval("SELECT citus_add_node($1, $2)", worker.settings.host, worker.settings.port)
"""

from .client import NodeClient
from .config import PostgresConnectionSettings
from .exceptions import BootstrapError, CatalogError, CitusOpsError

__all__ = [
    "BootstrapError",
    "CatalogError",
    "CitusOpsError",
    "NodeClient",
    "PostgresConnectionSettings",
]
