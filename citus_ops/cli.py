"""Console entry points.

``citus-register-workers`` is wired into a postStart hook and must exit 0 no
matter what; ``citus-init-db`` and ``citus-status`` report failures through
their exit code.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from pydantic import ValidationError
from rich.console import Console

from .citus.bootstrap import BootstrapSettings, arun_bootstrap
from .citus.catalog import CitusCatalog
from .citus.status import acheck_cluster
from .infrastructure.postgres import CitusOpsError, NodeClient
from .logger import LoggingConfig, configure_logging, get_logger
from .registrar.hook import run_poststart
from .registrar.readiness import make_endpoint_probe
from .registrar.runner import WorkerRegistrar
from .registrar.settings import RegistrarSettings

logger = get_logger(__name__)


def _configure_logging() -> None:
    try:
        configure_logging()
    except ValidationError:
        configure_logging(LoggingConfig.model_construct())
        logger.warning("Invalid LOG_* settings, using defaults")


def _build_register_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="citus-register-workers",
        description="Register the worker StatefulSet with the local Citus coordinator.",
    )
    parser.add_argument(
        "--poststart",
        action="store_true",
        help="Start registration in the background and return immediately (postStart hook mode, wins over --run)",
    )
    parser.add_argument(
        "--run",
        action="store_true",
        help="Run registration in the foreground (default)",
    )
    return parser


def _parse_register_args(argv: Sequence[str] | None) -> argparse.Namespace:
    raw = list(sys.argv[1:] if argv is None else argv)
    try:
        args, unknown = _build_register_parser().parse_known_args(raw)
    except SystemExit as e:
        if e.code == 0:
            raise
        # Malformed flags such as --poststart=yes: keep the hook mode the caller asked for.
        poststart = any(arg.startswith("--poststart") for arg in raw)
        logger.warning("Could not parse arguments, continuing", arguments=raw, poststart=poststart)
        return argparse.Namespace(poststart=poststart, run=not poststart)

    if unknown:
        logger.warning("Ignoring unknown arguments", arguments=unknown)
    return args


def run_registration() -> int:
    try:
        settings = RegistrarSettings()
    except ValidationError as e:
        logger.error("Invalid configuration -> skip worker registration", errors=e.errors(include_url=False))
        return 0

    try:
        asyncio.run(WorkerRegistrar.from_settings(settings).arun())
    except Exception:
        logger.exception("Worker registration aborted")
    return 0


def register_workers_main(argv: Sequence[str] | None = None) -> int:
    _configure_logging()
    args = _parse_register_args(argv)

    if args.poststart:
        return run_poststart()
    return run_registration()


def init_db_main(argv: Sequence[str] | None = None) -> int:
    argparse.ArgumentParser(
        prog="citus-init-db",
        description="Create the databases listed in DB_LIST and enable the citus extension in each.",
    ).parse_args(argv)
    _configure_logging()

    try:
        settings = BootstrapSettings()
        asyncio.run(arun_bootstrap(settings))
    except (ValidationError, CitusOpsError) as e:
        logger.error("Database initialization failed", error=str(e))
        return 1
    return 0


def status_main(argv: Sequence[str] | None = None) -> int:
    argparse.ArgumentParser(
        prog="citus-status",
        description="Compare the active Citus workers with the expected worker StatefulSet.",
    ).parse_args(argv)
    _configure_logging()

    try:
        settings = RegistrarSettings()
    except ValidationError as e:
        logger.error("Invalid configuration", errors=e.errors(include_url=False))
        return 1

    connection = settings.coordinator_connection()
    status = asyncio.run(
        acheck_cluster(
            CitusCatalog(NodeClient(connection)),
            settings.topology().endpoints() if settings.worker_statefulset_name else (),
            make_endpoint_probe(connection),
        )
    )
    Console().print_json(status.model_dump_json())
    return 0 if status.is_healthy else 1
