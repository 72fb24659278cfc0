"""Per-worker registration against the coordinator's node catalog.

Each worker moves through::

    WAITING_REACHABLE -> (timeout -> SKIPPED | ready -> CHECKING_EXISTING)
    CHECKING_EXISTING -> (exists -> SKIPPED | absent -> SANITIZING)
    SANITIZING -> REGISTERING -> (REGISTERED | FAILED)

Workers are handled strictly one at a time, in index order, and every
terminal state lets the loop move on to the next index.

Stale entries
-------------
A run that crashed halfway, or a worker pod recreated under the same DNS
name, can leave a ``pg_dist_node`` row for the worker on other nodes that
carry catalog metadata, and ``citus_add_node`` then trips over the unique
constraint. Before adding, the hostname is deleted from every other node the
coordinator knows about. Errors there are ignored; the add itself is retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenacity import RetryCallState

from ..infrastructure.postgres import CatalogError
from ..logger import bind_context, get_logger, unbind_context
from ..resilience import PollConfig, RetryConfig, retry, wait_until
from .domain import WorkerResult, WorkerState

if TYPE_CHECKING:
    from ..citus.catalog import NodeCatalog
    from .readiness import EndpointProbe
    from .topology import WorkerEndpoint

logger = get_logger(__name__)


class RegistrationReconciler:
    """Registers the expected workers with the coordinator, idempotently.

    Parameters
    ----------
    coordinator
        Catalog of the coordinator; ``for_node`` reaches the other nodes.
    probe
        Reachability check for a worker endpoint.
    reachability
        Poll interval and timeout for the per-worker reachability wait.
    registration
        Attempt bound and delay for ``citus_add_node``.

    Examples
    --------
    >>> reconciler = RegistrationReconciler(catalog, probe, settings.worker_poll(), settings.register_retry())
    >>> results = await reconciler.areconcile(topology.endpoints())
    """

    __slots__ = ("_coordinator", "_probe", "_reachability", "_registration")

    def __init__(
        self,
        coordinator: NodeCatalog,
        probe: EndpointProbe,
        reachability: PollConfig,
        registration: RetryConfig,
    ) -> None:
        self._coordinator = coordinator
        self._probe = probe
        self._reachability = reachability
        self._registration = registration

    async def areconcile(self, endpoints: tuple[WorkerEndpoint, ...]) -> tuple[WorkerResult, ...]:
        results: list[WorkerResult] = []
        for endpoint in endpoints:
            bind_context(worker=endpoint.index, host=endpoint.host)
            try:
                result = await self.areconcile_worker(endpoint)
            except Exception as e:
                # One broken worker must not keep the others unregistered.
                logger.exception("Unexpected error while registering worker -> continue")
                result = WorkerResult.failed(endpoint, reason=f"{type(e).__name__}: {e}", attempts=0)
            finally:
                unbind_context("worker", "host")
            results.append(result)
        return tuple(results)

    async def areconcile_worker(self, endpoint: WorkerEndpoint) -> WorkerResult:
        logger.info("Reconciling worker", worker=endpoint.index, host=endpoint.host)

        self._enter(WorkerState.WAITING_REACHABLE)
        if not await self._await_reachable(endpoint):
            logger.warning(
                "Timeout waiting for worker -> skip this worker",
                timeout_s=self._reachability.timeout_seconds,
            )
            self._enter(WorkerState.SKIPPED)
            return WorkerResult.skipped(endpoint, reason="unreachable")

        self._enter(WorkerState.CHECKING_EXISTING)
        if await self._is_registered(endpoint):
            logger.info("Already registered -> skip")
            self._enter(WorkerState.SKIPPED)
            return WorkerResult.skipped(endpoint, reason="already registered")

        self._enter(WorkerState.SANITIZING)
        await self._sanitize(endpoint)

        self._enter(WorkerState.REGISTERING)
        return await self._register(endpoint)

    def _enter(self, state: WorkerState) -> None:
        logger.debug("Worker state", state=state.value)

    async def _await_reachable(self, endpoint: WorkerEndpoint) -> bool:
        logger.info("Waiting for worker to accept connections", timeout_s=self._reachability.timeout_seconds)
        return await wait_until(lambda: self._probe(endpoint), self._reachability)

    async def _is_registered(self, endpoint: WorkerEndpoint) -> bool:
        try:
            return await self._coordinator.anode_exists(endpoint.host, endpoint.port)
        except CatalogError as e:
            # Unknown counts as absent; a duplicate add fails and is retried below.
            logger.warning("Could not check existing registration, assuming absent", error=str(e))
            return False

    async def _sanitize(self, endpoint: WorkerEndpoint) -> None:
        try:
            nodes = await self._coordinator.alist_nodes()
        except CatalogError as e:
            logger.warning("Could not list registered nodes, skipping cleanup", error=str(e))
            return

        for node in nodes:
            if node.nodename == endpoint.host:
                continue
            peer = self._coordinator.for_node(node.nodename, node.nodeport)
            try:
                await peer.aremove_node(endpoint.host)
            except CatalogError as e:
                logger.debug("Stale entry cleanup failed, ignoring", peer=peer.target, error=str(e))

    async def _register(self, endpoint: WorkerEndpoint) -> WorkerResult:
        attempts = 0

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Registering node failed, retrying",
                attempt=retry_state.attempt_number,
                max_attempts=self._registration.max_attempts,
                error=str(error),
            )

        @retry(self._registration, before_sleep=log_retry)
        async def add_node() -> int:
            nonlocal attempts
            attempts += 1
            return await self._coordinator.aadd_node(endpoint.host, endpoint.port)

        logger.info("Registering node...")
        try:
            node_id = await add_node()
        except CatalogError as e:
            logger.error("Registering node failed, giving up on this worker", attempts=attempts, error=str(e))
            self._enter(WorkerState.FAILED)
            return WorkerResult.failed(endpoint, reason=str(e), attempts=attempts)

        logger.info("Registered", node_id=node_id, attempts=attempts)
        self._enter(WorkerState.REGISTERED)
        return WorkerResult.registered(endpoint, node_id=node_id, attempts=attempts)
