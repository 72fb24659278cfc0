from __future__ import annotations

from typing import TYPE_CHECKING, Self

from ..citus.catalog import CitusCatalog
from ..infrastructure.postgres import NodeClient
from ..logger import get_logger
from .domain import RunSummary
from .preflight import run_preflight
from .readiness import aensure_citus_extension, await_coordinator, await_fleet, make_endpoint_probe
from .reconciler import RegistrationReconciler

if TYPE_CHECKING:
    from ..resilience.types import Probe
    from .readiness import EndpointProbe
    from .settings import RegistrarSettings

logger = get_logger(__name__)


class WorkerRegistrar:
    """Runs the registration phases in order for one container start.

    Preflight -> coordinator readiness -> citus extension -> fleet barrier
    -> per-worker reconciliation. Every early stop is a `RunSummary`, not an
    exception.
    """

    __slots__ = ("_catalog", "_coordinator_probe", "_endpoint_probe", "_settings")

    def __init__(
        self,
        settings: RegistrarSettings,
        catalog: CitusCatalog,
        coordinator_probe: Probe,
        endpoint_probe: EndpointProbe,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self._coordinator_probe = coordinator_probe
        self._endpoint_probe = endpoint_probe

    @classmethod
    def from_settings(cls, settings: RegistrarSettings) -> Self:
        connection = settings.coordinator_connection()
        client = NodeClient(connection)
        return cls(
            settings=settings,
            catalog=CitusCatalog(client),
            coordinator_probe=client.aping,
            endpoint_probe=make_endpoint_probe(connection),
        )

    async def arun(self) -> RunSummary:
        failure = run_preflight(self._settings)
        if failure is not None:
            log = logger.warning if failure.level == "warning" else logger.info
            log(failure.message, check=failure.check)
            return RunSummary.preflight_skipped(failure.message)

        await await_coordinator(self._coordinator_probe, self._settings.coordinator_poll(), target=self._catalog.target)

        if not await aensure_citus_extension(self._catalog):
            return RunSummary.extension_deferred("CREATE EXTENSION citus failed")

        topology = self._settings.topology()
        endpoints = topology.endpoints()
        logger.info(
            "Registering workers",
            workers=topology.worker_replicas,
            statefulset=topology.worker_statefulset_name,
            namespace=topology.namespace,
        )

        await await_fleet(endpoints, self._endpoint_probe, self._settings.fleet_poll())

        reconciler = RegistrationReconciler(
            self._catalog,
            self._endpoint_probe,
            reachability=self._settings.worker_poll(),
            registration=self._settings.register_retry(),
        )
        summary = RunSummary.completed(await reconciler.areconcile(endpoints))

        logger.info(
            "Worker registration complete",
            registered=summary.registered_count,
            skipped=summary.skipped_count,
            failed=summary.failed_count,
        )
        for result in summary.results:
            if result.reason is not None:
                logger.info(
                    "Worker result",
                    worker=result.endpoint.index,
                    host=result.endpoint.host,
                    outcome=result.outcome.value,
                    reason=result.reason,
                )
        return summary
