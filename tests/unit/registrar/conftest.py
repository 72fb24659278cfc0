"""In-memory stand-ins for the Citus node catalog and reachability probes."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Self

import pytest

from citus_ops.citus.catalog import RegisteredNode
from citus_ops.infrastructure.postgres import CatalogError
from citus_ops.registrar import RegistrarSettings
from citus_ops.registrar.topology import WorkerEndpoint

COORDINATOR = "coordinator"

REGISTRAR_ENV_VARS = (
    "POSTGRES_USER",
    "POSTGRES_DB",
    "POSTGRES_PORT",
    "PGPASSWORD",
    "POD_NAMESPACE",
    "PG_WORKER_REPLICAS",
    "PG_WORKER_STATEFULSET_NAME",
    "PG_WORKER_PORT",
    "PG_WORKER_HEADLESS_SERVICE",
    "CLUSTER_DOMAIN",
    "COORDINATOR_WAIT_INTERVAL_SEC",
    "WORKER_WAIT_TIMEOUT_SEC",
    "WORKER_WAIT_INTERVAL_SEC",
    "WORKER_FLEET_WAIT_TIMEOUT_SEC",
    "REGISTER_MAX_ATTEMPTS",
    "REGISTER_RETRY_DELAY_SEC",
    "PG_CONNECT_TIMEOUT_SEC",
)


class FakeCluster:
    """``pg_dist_node`` contents per node, plus a log of every catalog command.

    ``citus_add_node`` fails with a duplicate-key error while any node known
    to the coordinator still holds a row for the host being added, which is
    what a stale registration looks like in a real cluster.
    """

    def __init__(self) -> None:
        self.catalogs: dict[str, set[tuple[str, int]]] = defaultdict(set)
        self.commands: list[tuple[str, str, tuple[Any, ...]]] = []
        self.always_fail_add: set[str] = set()
        self.fail_add_times: dict[str, int] = {}
        self.broken_peers: set[str] = set()
        self.extension_fails = False
        self._next_node_id = 1

    def record(self, command: str, node: str, *args: Any) -> None:
        self.commands.append((command, node, args))

    def commands_named(self, command: str) -> list[tuple[str, str, tuple[Any, ...]]]:
        return [entry for entry in self.commands if entry[0] == command]

    def catalog(self, port: int = 5432) -> FakeCatalog:
        return FakeCatalog(self, COORDINATOR, port)

    def stale_holders(self, host: str) -> list[str]:
        known = {nodename for nodename, _ in self.catalogs[COORDINATOR]}
        return [
            node
            for node in known
            if node != host and any(nodename == host for nodename, _ in self.catalogs.get(node, set()))
        ]


class FakeCatalog:
    def __init__(self, cluster: FakeCluster, node: str, port: int = 5432) -> None:
        self._cluster = cluster
        self.node = node
        self.port = port

    @property
    def target(self) -> str:
        return f"{self.node}:{self.port}/app"

    def for_node(self, host: str, port: int) -> Self:
        return type(self)(self._cluster, host, port)

    def _error(self, operation: str, message: str) -> CatalogError:
        return CatalogError(operation, self.target, RuntimeError(message))

    async def aensure_extension(self) -> None:
        self._cluster.record("create_extension", self.node)
        if self._cluster.extension_fails:
            raise self._error("create extension", "could not open extension control file")

    async def anode_exists(self, host: str, port: int) -> bool:
        self._cluster.record("node_exists", self.node, host, port)
        return (host, port) in self._cluster.catalogs[self.node]

    async def alist_nodes(self) -> tuple[RegisteredNode, ...]:
        self._cluster.record("list_nodes", self.node)
        return tuple(
            RegisteredNode(nodename=nodename, nodeport=nodeport)
            for nodename, nodeport in sorted(self._cluster.catalogs[self.node])
        )

    async def aremove_node(self, host: str) -> None:
        self._cluster.record("remove_node", self.node, host)
        if self.node in self._cluster.broken_peers:
            raise self._error("remove node", "connection refused")
        entries = self._cluster.catalogs[self.node]
        for entry in [entry for entry in entries if entry[0] == host]:
            entries.discard(entry)

    async def aadd_node(self, host: str, port: int) -> int:
        self._cluster.record("add_node", self.node, host, port)
        if host in self._cluster.always_fail_add:
            raise self._error("add node", "duplicate key value violates unique constraint")
        if self._cluster.fail_add_times.get(host, 0) > 0:
            self._cluster.fail_add_times[host] -= 1
            raise self._error("add node", "could not connect to node")
        if self._cluster.stale_holders(host):
            raise self._error("add node", "duplicate key value violates unique constraint")
        self._cluster.catalogs[self.node].add((host, port))
        node_id = self._cluster._next_node_id
        self._cluster._next_node_id += 1
        return node_id


class FakeProbe:
    """Reachability probe with a fixed set of hosts that never answer."""

    def __init__(self, unreachable: set[str] | None = None) -> None:
        self.unreachable = unreachable or set()
        self.calls: list[str] = []

    async def __call__(self, endpoint: WorkerEndpoint) -> bool:
        self.calls.append(endpoint.host)
        return endpoint.host not in self.unreachable


@pytest.fixture(autouse=True)
def _clean_registrar_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host environment out of settings built in tests."""
    for name in REGISTRAR_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def fast_settings() -> RegistrarSettings:
    """Settings for three workers with every wait shrunk to zero or near zero."""
    return RegistrarSettings(
        POSTGRES_USER="postgres",
        POSTGRES_DB="app",
        PGPASSWORD="secret",
        POD_NAMESPACE="data",
        PG_WORKER_REPLICAS=3,
        PG_WORKER_STATEFULSET_NAME="pg-worker",
        COORDINATOR_WAIT_INTERVAL_SEC=0,
        WORKER_WAIT_TIMEOUT_SEC=0.05,
        WORKER_WAIT_INTERVAL_SEC=0,
        REGISTER_MAX_ATTEMPTS=10,
        REGISTER_RETRY_DELAY_SEC=0,
    )
