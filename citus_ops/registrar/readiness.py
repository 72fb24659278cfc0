from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ..infrastructure.postgres import CatalogError, NodeClient, PostgresConnectionSettings
from ..logger import get_logger
from ..resilience import PollConfig, wait_until

if TYPE_CHECKING:
    from tenacity import RetryCallState

    from ..citus.catalog import CitusCatalog
    from ..resilience.types import Probe
    from .topology import WorkerEndpoint

logger = get_logger(__name__)

type EndpointProbe = Callable[[WorkerEndpoint], Awaitable[bool]]


def make_endpoint_probe(settings: PostgresConnectionSettings) -> EndpointProbe:
    """Build a probe that checks a worker with the coordinator's credentials."""

    async def probe(endpoint: WorkerEndpoint) -> bool:
        return await NodeClient(settings.for_host(endpoint.host, endpoint.port)).aping()

    return probe


def _log_still_waiting(target: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.debug(
            "Still waiting for node to accept connections",
            target=target,
            attempt=retry_state.attempt_number,
            elapsed_s=round(retry_state.seconds_since_start or 0.0, 1),
        )

    return before_sleep


async def await_coordinator(probe: Probe, poll: PollConfig, target: str = "coordinator") -> None:
    """Block until the coordinator accepts connections.

    There is no timeout: a coordinator that never comes up is the liveness
    probe's problem, which restarts the container and this process with it.
    """
    logger.info("Waiting for coordinator DB to accept connections", target=target, interval_s=poll.interval_seconds)
    await wait_until(probe, poll.model_copy(update={"timeout_seconds": None}), before_sleep=_log_still_waiting(target))
    logger.info("Coordinator DB is accepting connections", target=target)


async def aensure_citus_extension(catalog: CitusCatalog) -> bool:
    """Create the citus extension if needed.

    Returns
    -------
    bool
        False when the command failed; the caller stops and lets the next
        container start retry.
    """
    logger.info("Ensuring citus extension exists in coordinator DB", target=catalog.target)
    try:
        await catalog.aensure_extension()
    except CatalogError as e:
        logger.warning("CREATE EXTENSION citus failed (transient?) -> skip for now", error=str(e))
        return False
    return True


async def await_fleet(endpoints: tuple[WorkerEndpoint, ...], probe: EndpointProbe, poll: PollConfig) -> bool:
    """Wait until every expected worker accepts connections.

    Workers are checked one after another in index order. ``poll.timeout_seconds``
    caps the whole barrier, not each worker; None waits indefinitely.

    Returns
    -------
    bool
        True when the whole fleet answered, False if the cap ran out first.
    """
    logger.info("Waiting for worker fleet to stabilize", workers=len(endpoints))
    deadline = None if poll.timeout_seconds is None else time.monotonic() + poll.timeout_seconds

    for endpoint in endpoints:
        remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
        ready = await wait_until(
            lambda endpoint=endpoint: probe(endpoint),
            poll.model_copy(update={"timeout_seconds": remaining}),
            before_sleep=_log_still_waiting(str(endpoint)),
        )
        if not ready:
            logger.warning(
                "Worker fleet did not stabilize in time -> registering what is reachable",
                timeout_s=poll.timeout_seconds,
                pending=str(endpoint),
            )
            return False

    logger.info("Worker fleet is accepting connections", workers=len(endpoints))
    return True
