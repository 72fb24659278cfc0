"""Worker endpoints derived from the StatefulSet naming convention.

Kubernetes gives every replica of a StatefulSet behind a headless service a
stable DNS name, so the expected fleet is computed, never discovered::

    <statefulset>-<index>.<headless-service>.<namespace>.<cluster-domain>
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HEADLESS_SERVICE = "postgres-worker-headless"
DEFAULT_CLUSTER_DOMAIN = "svc.cluster.local"


class WorkerEndpoint(BaseModel):
    """One expected worker of the distributed database."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    index: int = Field(ge=0)
    host: str = Field(min_length=1)
    port: int = Field(default=5432, ge=1, le=65535)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class ClusterTopology(BaseModel):
    """Expected shape of the worker fleet for one run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    worker_replicas: int = Field(ge=0)
    worker_statefulset_name: str = Field(min_length=1)
    namespace: str = Field(default="default", min_length=1)
    headless_service: str = Field(default=DEFAULT_HEADLESS_SERVICE, min_length=1)
    cluster_domain: str = Field(default=DEFAULT_CLUSTER_DOMAIN, min_length=1)
    worker_port: int = Field(default=5432, ge=1, le=65535)

    def worker_host(self, index: int) -> str:
        return f"{self.worker_statefulset_name}-{index}.{self.headless_service}.{self.namespace}.{self.cluster_domain}"

    def endpoints(self) -> tuple[WorkerEndpoint, ...]:
        """All expected workers, in index order."""
        return tuple(
            WorkerEndpoint(index=index, host=self.worker_host(index), port=self.worker_port)
            for index in range(self.worker_replicas)
        )
