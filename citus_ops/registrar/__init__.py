"""Citus worker registration for the coordinator's postStart hook.

Usage
-----
From the pod spec::

    lifecycle:
      postStart:
        exec:
          command: ["citus-register-workers", "--poststart"]

Manually, in the foreground::

    citus-register-workers --run
"""

from __future__ import annotations

from .domain import RunStatus, RunSummary, WorkerOutcome, WorkerResult, WorkerState
from .preflight import PreflightFailure, run_preflight
from .reconciler import RegistrationReconciler
from .runner import WorkerRegistrar
from .settings import RegistrarSettings
from .topology import ClusterTopology, WorkerEndpoint

__all__ = [
    "ClusterTopology",
    "PreflightFailure",
    "RegistrarSettings",
    "RegistrationReconciler",
    "RunStatus",
    "RunSummary",
    "WorkerEndpoint",
    "WorkerOutcome",
    "WorkerRegistrar",
    "WorkerResult",
    "WorkerState",
    "run_preflight",
]
