"""Create the application databases and enable Citus in each.

Runs once from the image's init step. Unlike the worker registrar this is
allowed to fail: a database that cannot be created is a broken deployment.
"""

from __future__ import annotations

import asyncpg
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..infrastructure.postgres import BootstrapError, CatalogError, NodeClient, PostgresConnectionSettings
from ..logger import get_logger
from ..resilience import PollConfig, wait_until
from .catalog import CitusCatalog

logger = get_logger(__name__)

DATABASE_EXISTS_SQL = "SELECT 1 FROM pg_database WHERE datname = $1"

# Init scripts run while the server listens on its Unix socket only.
DEFAULT_SOCKET_DIR = "/var/run/postgresql"


class BootstrapSettings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    postgres_user: str = Field(default="postgres", validation_alias="POSTGRES_USER")
    postgres_db: str | None = Field(default=None, validation_alias="POSTGRES_DB")
    postgres_host: str = Field(
        default=DEFAULT_SOCKET_DIR,
        validation_alias="POSTGRES_HOST",
        description="Host name, or an absolute path for the Unix socket directory",
    )
    postgres_port: int = Field(default=5432, ge=1, le=65535, validation_alias="POSTGRES_PORT")
    password: SecretStr | None = Field(default=None, validation_alias="POSTGRES_PASSWORD")
    db_list: str = Field(default="", validation_alias="DB_LIST", description="Whitespace-separated database names")
    wait_interval_sec: float = Field(default=2.0, ge=0, validation_alias="DB_WAIT_INTERVAL_SEC")

    @property
    def databases(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(self.db_list.split()))

    def maintenance_connection(self) -> PostgresConnectionSettings:
        return PostgresConnectionSettings(
            host=self.postgres_host,
            port=self.postgres_port,
            database=self.postgres_db or self.postgres_user,
            user=self.postgres_user,
            password=self.password,
            application_name="citus-init-db",
        )


def quote_ident(name: str) -> str:
    """Quote an SQL identifier; identifiers cannot be bind parameters."""
    if not name or "\x00" in name:
        raise ValueError(f"invalid identifier: {name!r}")
    return '"' + name.replace('"', '""') + '"'


class DatabaseBootstrapper:
    """Ensures each configured database exists and has the citus extension.

    Examples
    --------
    >>> bootstrapper = DatabaseBootstrapper(NodeClient(settings.maintenance_connection()))
    >>> created = await bootstrapper.abootstrap(("app", "analytics"))
    """

    __slots__ = ("_client",)

    def __init__(self, client: NodeClient) -> None:
        self._client = client

    async def aensure_database(self, name: str) -> bool:
        """Create ``name`` unless it exists. Returns True if it was created."""
        statement = f"CREATE DATABASE {quote_ident(name)}"
        try:
            if await self._client.afetchval(DATABASE_EXISTS_SQL, name) == 1:
                logger.info("Database already exists, skipping creation", database=name)
                return False
            logger.info("Creating database", database=name)
            await self._client.aexecute(statement)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError) as e:
            raise BootstrapError(f"could not create database {name!r}: {e}") from e
        return True

    async def aensure_extension(self, name: str) -> None:
        logger.info("Ensuring citus extension is enabled", database=name)
        catalog = CitusCatalog(NodeClient(self._client.settings.for_database(name)))
        try:
            await catalog.aensure_extension()
        except CatalogError as e:
            raise BootstrapError(f"could not enable citus in {name!r}: {e}") from e

    async def abootstrap(self, databases: tuple[str, ...]) -> tuple[str, ...]:
        """Bootstrap every database in order and return the ones that were created."""
        created: list[str] = []
        for name in databases:
            if await self.aensure_database(name):
                created.append(name)
            await self.aensure_extension(name)
        return tuple(created)


async def arun_bootstrap(settings: BootstrapSettings) -> tuple[str, ...]:
    client = NodeClient(settings.maintenance_connection())

    logger.info("Waiting for local Postgres to accept connections", target=client.settings.target)
    await wait_until(client.aping, PollConfig(interval_seconds=settings.wait_interval_sec))
    logger.info("Postgres is up, starting database verification")

    if not settings.databases:
        logger.warning("DB_LIST is empty, no databases to create")
        return ()

    created = await DatabaseBootstrapper(client).abootstrap(settings.databases)
    logger.info("Initialization sequence finished", databases=list(settings.databases), created=list(created))
    return created
