"""Citus catalog access, database bootstrap and cluster status."""

from __future__ import annotations

from .bootstrap import BootstrapSettings, DatabaseBootstrapper, arun_bootstrap, quote_ident
from .catalog import CitusCatalog, DistributedTable, NodeCatalog, RegisteredNode
from .status import ClusterStatus, WorkerNodeStatus, acheck_cluster

__all__ = [
    "BootstrapSettings",
    "CitusCatalog",
    "ClusterStatus",
    "DatabaseBootstrapper",
    "DistributedTable",
    "NodeCatalog",
    "RegisteredNode",
    "WorkerNodeStatus",
    "acheck_cluster",
    "arun_bootstrap",
    "quote_ident",
]
