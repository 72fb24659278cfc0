"""Connection settings for short-lived asyncpg connections.

Every node in the Citus topology (coordinator and workers) shares database,
credentials and timeouts; only the host, and occasionally the port, differ.
"""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, SecretStr, computed_field


class PostgresConnectionSettings(BaseModel):
    """Connection settings for one PostgreSQL node.

    Examples
    --------
    >>> coordinator = PostgresConnectionSettings(
    ...     host="localhost",
    ...     database="app",
    ...     user="postgres",
    ...     password=SecretStr("secret"),
    ... )
    >>> worker = coordinator.for_host("pg-worker-0.postgres-worker-headless.default.svc.cluster.local")
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field(default="localhost", min_length=1)
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="postgres", min_length=1)
    user: str = Field(default="postgres", min_length=1)
    password: SecretStr | None = Field(default=None)
    connect_timeout: float = Field(default=5.0, gt=0.0, le=300.0, description="Connection timeout (seconds)")
    application_name: str = Field(default="citus-ops")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def target(self) -> str:
        """``host:port/database``, safe to log."""
        return f"{self.host}:{self.port}/{self.database}"

    def to_connect_params(self) -> dict[str, Any]:
        """Convert settings to ``asyncpg.connect()`` keyword arguments.

        Returns
        -------
        dict[str, Any]
            Parameters for asyncpg.connect().
        """
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password.get_secret_value() if self.password else None,
            "timeout": self.connect_timeout,
            "server_settings": {"application_name": self.application_name},
        }

    def for_host(self, host: str, port: int | None = None) -> Self:
        """Copy these settings for another node of the cluster.

        Parameters
        ----------
        host
            Hostname of the other node.
        port
            Optional port override. Defaults to this node's port.

        Returns
        -------
        Self
            New settings pointing at ``host``.
        """
        return self.model_copy(update={"host": host, "port": port if port is not None else self.port})

    def for_database(self, database: str) -> Self:
        """Copy these settings for another database on the same node."""
        return self.model_copy(update={"database": database})
