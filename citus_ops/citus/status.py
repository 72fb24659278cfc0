"""Read-only health check of the worker registration.

Registration failures are only ever logged, so this is how an operator sees
whether the shard topology is complete: compare the workers Citus considers
active with the workers the StatefulSet should provide.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..core.enums import HealthStatus
from ..infrastructure.postgres import CatalogError
from ..logger import get_logger
from .catalog import DistributedTable, RegisteredNode

if TYPE_CHECKING:
    from ..registrar.topology import WorkerEndpoint
    from .catalog import CitusCatalog

logger = get_logger(__name__)


class WorkerNodeStatus(BaseModel):
    """Expected worker as seen from the coordinator."""

    model_config = ConfigDict(frozen=True)

    index: int
    host: str
    port: int
    reachable: bool
    active: bool


class ClusterStatus(BaseModel):
    """Health of the Citus cluster membership."""

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    citus_version: str | None = None
    workers: tuple[WorkerNodeStatus, ...] = Field(default_factory=tuple)
    unexpected_workers: tuple[RegisteredNode, ...] = Field(default_factory=tuple)
    distributed_tables: tuple[DistributedTable, ...] = Field(
        default_factory=tuple,
        description="Informational; does not affect the health status",
    )
    message: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def active_count(self) -> int:
        return sum(1 for worker in self.workers if worker.active) + len(self.unexpected_workers)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def missing_workers(self) -> tuple[str, ...]:
        return tuple(worker.host for worker in self.workers if not worker.active)

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    @classmethod
    def unavailable(cls: type[Self], error: str) -> Self:
        return cls(status=HealthStatus.UNHEALTHY, message=error)


def _classify(workers: tuple[WorkerNodeStatus, ...], active_total: int) -> tuple[HealthStatus, str]:
    if active_total == 0:
        return HealthStatus.UNHEALTHY, "No workers found, cluster is not formed"
    missing = sum(1 for worker in workers if not worker.active)
    if missing:
        return HealthStatus.DEGRADED, f"{missing} of {len(workers)} expected workers are not active"
    return HealthStatus.HEALTHY, "All expected workers are registered"


async def acheck_cluster(
    catalog: CitusCatalog,
    endpoints: tuple[WorkerEndpoint, ...],
    probe: Callable[[WorkerEndpoint], Awaitable[bool]],
) -> ClusterStatus:
    """Compare active Citus workers with the expected endpoints.

    Parameters
    ----------
    catalog
        Coordinator catalog.
    endpoints
        Workers the topology expects.
    probe
        Reachability check, reported per worker next to its registration.

    Returns
    -------
    ClusterStatus
        HEALTHY when every expected worker is active, DEGRADED when some are
        missing, UNHEALTHY when none are active or Citus is not available.
    """
    try:
        version = await catalog.aversion()
        active = await catalog.aactive_workers()
    except CatalogError as e:
        logger.error("Citus extension not found or not active", error=str(e))
        return ClusterStatus.unavailable(str(e))

    try:
        tables = await catalog.adistributed_tables()
    except CatalogError as e:
        logger.warning("Could not list distributed tables", error=str(e))
        tables = ()

    active_keys = {(node.nodename, node.nodeport) for node in active}
    expected_keys = {(endpoint.host, endpoint.port) for endpoint in endpoints}

    worker_statuses: list[WorkerNodeStatus] = []
    for endpoint in endpoints:
        worker_statuses.append(
            WorkerNodeStatus(
                index=endpoint.index,
                host=endpoint.host,
                port=endpoint.port,
                reachable=await probe(endpoint),
                active=(endpoint.host, endpoint.port) in active_keys,
            )
        )
    workers = tuple(worker_statuses)
    unexpected = tuple(node for node in active if (node.nodename, node.nodeport) not in expected_keys)

    status, message = _classify(workers, len(active))
    logger.info("Cluster status", status=status.value, active=len(active), expected=len(endpoints))
    return ClusterStatus(
        status=status,
        citus_version=version,
        workers=workers,
        unexpected_workers=unexpected,
        distributed_tables=tables,
        message=message,
    )
