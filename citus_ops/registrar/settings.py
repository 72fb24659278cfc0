from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..infrastructure.postgres import CatalogError, PostgresConnectionSettings
from ..resilience import PollConfig, RetryConfig
from .topology import DEFAULT_CLUSTER_DOMAIN, DEFAULT_HEADLESS_SERVICE, ClusterTopology


class RegistrarSettings(BaseSettings):
    """Everything the worker registrar reads from the container environment.

    Built once at process start and handed to every phase; nothing below the
    entry point reads ``os.environ``. Empty variables fall back to the
    defaults, the same way ``${VAR:-default}`` does in the pod spec.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    postgres_user: str = Field(default="postgres", validation_alias="POSTGRES_USER")
    postgres_db: str | None = Field(default=None, validation_alias="POSTGRES_DB")
    postgres_port: int = Field(default=5432, ge=1, le=65535, validation_alias="POSTGRES_PORT")
    password: SecretStr | None = Field(default=None, validation_alias="PGPASSWORD")
    pod_namespace: str = Field(default="default", validation_alias="POD_NAMESPACE")

    worker_replicas: int = Field(default=0, validation_alias="PG_WORKER_REPLICAS")
    worker_statefulset_name: str = Field(default="", validation_alias="PG_WORKER_STATEFULSET_NAME")
    worker_port: int = Field(default=5432, ge=1, le=65535, validation_alias="PG_WORKER_PORT")
    worker_headless_service: str = Field(default=DEFAULT_HEADLESS_SERVICE, validation_alias="PG_WORKER_HEADLESS_SERVICE")
    cluster_domain: str = Field(default=DEFAULT_CLUSTER_DOMAIN, validation_alias="CLUSTER_DOMAIN")

    coordinator_wait_interval_sec: float = Field(default=2.0, ge=0, validation_alias="COORDINATOR_WAIT_INTERVAL_SEC")
    worker_wait_timeout_sec: float = Field(default=600.0, ge=0, validation_alias="WORKER_WAIT_TIMEOUT_SEC")
    worker_wait_interval_sec: float = Field(default=3.0, ge=0, validation_alias="WORKER_WAIT_INTERVAL_SEC")
    worker_fleet_wait_timeout_sec: float | None = Field(
        default=None, ge=0, validation_alias="WORKER_FLEET_WAIT_TIMEOUT_SEC"
    )
    register_max_attempts: int = Field(default=10, ge=1, validation_alias="REGISTER_MAX_ATTEMPTS")
    register_retry_delay_sec: float = Field(default=3.0, ge=0, validation_alias="REGISTER_RETRY_DELAY_SEC")
    connect_timeout_sec: float = Field(default=5.0, gt=0, validation_alias="PG_CONNECT_TIMEOUT_SEC")

    @property
    def database(self) -> str:
        return self.postgres_db or self.postgres_user

    def coordinator_connection(self) -> PostgresConnectionSettings:
        """Connection settings for the local coordinator; workers reuse them via ``for_host``."""
        return PostgresConnectionSettings(
            host="localhost",
            port=self.postgres_port,
            database=self.database,
            user=self.postgres_user,
            password=self.password,
            connect_timeout=self.connect_timeout_sec,
            application_name="citus-register-workers",
        )

    def topology(self) -> ClusterTopology:
        return ClusterTopology(
            worker_replicas=max(self.worker_replicas, 0),
            worker_statefulset_name=self.worker_statefulset_name,
            namespace=self.pod_namespace,
            headless_service=self.worker_headless_service,
            cluster_domain=self.cluster_domain,
            worker_port=self.worker_port,
        )

    def coordinator_poll(self) -> PollConfig:
        return PollConfig(interval_seconds=self.coordinator_wait_interval_sec, timeout_seconds=None)

    def fleet_poll(self) -> PollConfig:
        return PollConfig(
            interval_seconds=self.worker_wait_interval_sec,
            timeout_seconds=self.worker_fleet_wait_timeout_sec,
        )

    def worker_poll(self) -> PollConfig:
        return PollConfig(
            interval_seconds=self.worker_wait_interval_sec,
            timeout_seconds=self.worker_wait_timeout_sec,
        )

    def register_retry(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.register_max_attempts,
            delay_seconds=self.register_retry_delay_sec,
            retry_on_exceptions=(CatalogError,),
        )
