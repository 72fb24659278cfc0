"""Configuration checks that turn a misconfigured start into a no-op.

The registrar runs on every coordinator container start, including
standalone and worker roles where nothing needs registering. A missing
precondition is therefore a reason to stop quietly, never an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from .settings import RegistrarSettings


class PreflightFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    check: str
    message: str
    level: Literal["info", "warning"]


def run_preflight(settings: RegistrarSettings) -> PreflightFailure | None:
    """Return the first failing precondition, or None when registration can proceed.

    Checks, in order: worker StatefulSet name, database password, replica count.
    """
    if not settings.worker_statefulset_name:
        return PreflightFailure(
            check="worker_statefulset_name",
            message="PG_WORKER_STATEFULSET_NAME is missing -> skip worker registration",
            level="warning",
        )

    if settings.password is None or not settings.password.get_secret_value():
        return PreflightFailure(
            check="password",
            message="PGPASSWORD is missing -> skip worker registration",
            level="warning",
        )

    if settings.worker_replicas <= 0:
        return PreflightFailure(
            check="worker_replicas",
            message=f"PG_WORKER_REPLICAS={settings.worker_replicas} -> nothing to register",
            level="info",
        )

    return None
