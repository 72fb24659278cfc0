"""Fixtures for tests against a real single-node Citus server."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from docker import from_env  # type: ignore[import-untyped]
from docker.errors import DockerException  # type: ignore[import-untyped]
from pydantic import SecretStr
from testcontainers.postgres import PostgresContainer  # type: ignore[import-untyped]

from citus_ops.citus import CitusCatalog
from citus_ops.infrastructure.postgres import NodeClient, PostgresConnectionSettings

if TYPE_CHECKING:
    from collections.abc import Iterator

CITUS_IMAGE = "citusdata/citus:12.1"
DB_USER = "citus_user"
DB_PASSWORD = "citus_password"
DB_NAME = "citus_db"


def pytest_configure(config: pytest.Config) -> None:  # noqa: ARG001
    if not os.environ.get("DOCKER_HOST"):
        for socket_path in (Path("/var/run/docker.sock"), Path.home() / ".docker" / "run" / "docker.sock"):
            if socket_path.exists():
                os.environ["DOCKER_HOST"] = f"unix://{socket_path}"
                os.environ["TESTCONTAINERS_DOCKER_SOCKET_OVERRIDE"] = str(socket_path)
                break

    if sys.platform == "darwin" and not os.environ.get("TESTCONTAINERS_RYUK_DISABLED"):
        os.environ["TESTCONTAINERS_RYUK_DISABLED"] = "true"


def _is_docker_available() -> bool:
    try:
        from_env().ping()
    except DockerException:
        return False
    return True


@pytest.fixture(scope="session")
def citus_container() -> Iterator[PostgresContainer]:
    """Session-scoped Citus coordinator with no workers."""
    if not _is_docker_available():
        pytest.skip("Docker daemon not available, skipping Citus integration tests")

    container = PostgresContainer(CITUS_IMAGE, username=DB_USER, password=DB_PASSWORD, dbname=DB_NAME)
    container.start()
    try:
        yield container
    finally:
        container.stop()


@pytest.fixture
def coordinator_settings(citus_container: PostgresContainer) -> PostgresConnectionSettings:
    return PostgresConnectionSettings(
        host=citus_container.get_container_host_ip(),
        port=int(citus_container.get_exposed_port(5432)),
        database=DB_NAME,
        user=DB_USER,
        password=SecretStr(DB_PASSWORD),
        connect_timeout=10.0,
    )


@pytest.fixture
def coordinator_client(coordinator_settings: PostgresConnectionSettings) -> NodeClient:
    return NodeClient(coordinator_settings)


@pytest.fixture
def coordinator_catalog(coordinator_client: NodeClient) -> CitusCatalog:
    return CitusCatalog(coordinator_client)
