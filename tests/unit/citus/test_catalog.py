"""CitusCatalog issues parameterised SQL and wraps driver failures."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from citus_ops.citus import CitusCatalog, DistributedTable, RegisteredNode
from citus_ops.citus.catalog import (
    ACTIVE_WORKERS_SQL,
    ADD_NODE_SQL,
    CREATE_EXTENSION_SQL,
    DISTRIBUTED_TABLES_SQL,
    LIST_NODES_SQL,
    NODE_EXISTS_SQL,
    REMOVE_NODE_SQL,
)
from citus_ops.infrastructure.postgres import CatalogError, NodeClient, PostgresConnectionSettings

WORKER = "pg-worker-0.postgres-worker-headless.data.svc.cluster.local"


@pytest.fixture
def client() -> MagicMock:
    mock_client = MagicMock(spec=NodeClient)
    mock_client.settings = PostgresConnectionSettings(host="localhost", database="app")
    mock_client.aexecute = AsyncMock(return_value="OK")
    mock_client.afetch = AsyncMock(return_value=[])
    mock_client.afetchval = AsyncMock(return_value=None)
    return mock_client


@pytest.fixture
def catalog(client: MagicMock) -> CitusCatalog:
    return CitusCatalog(client)


class TestCatalogCommands:
    @pytest.mark.asyncio
    async def test_ensure_extension(self, catalog: CitusCatalog, client: MagicMock) -> None:
        await catalog.aensure_extension()

        client.aexecute.assert_awaited_once_with(CREATE_EXTENSION_SQL)

    @pytest.mark.asyncio
    async def test_node_exists_binds_host_and_port(self, catalog: CitusCatalog, client: MagicMock) -> None:
        client.afetchval.return_value = 1

        assert await catalog.anode_exists(WORKER, 5432) is True
        client.afetchval.assert_awaited_once_with(NODE_EXISTS_SQL, WORKER, 5432)

    @pytest.mark.asyncio
    async def test_node_absent(self, catalog: CitusCatalog, client: MagicMock) -> None:
        client.afetchval.return_value = None

        assert await catalog.anode_exists(WORKER, 5432) is False

    @pytest.mark.asyncio
    async def test_list_nodes(self, catalog: CitusCatalog, client: MagicMock) -> None:
        client.afetch.return_value = [
            {"nodename": "coordinator-a", "nodeport": 5432},
            {"nodename": WORKER, "nodeport": 5432},
        ]

        nodes = await catalog.alist_nodes()

        client.afetch.assert_awaited_once_with(LIST_NODES_SQL)
        assert nodes == (
            RegisteredNode(nodename="coordinator-a", nodeport=5432),
            RegisteredNode(nodename=WORKER, nodeport=5432),
        )

    @pytest.mark.asyncio
    async def test_remove_node_matches_hostname_only(self, catalog: CitusCatalog, client: MagicMock) -> None:
        await catalog.aremove_node(WORKER)

        client.aexecute.assert_awaited_once_with(REMOVE_NODE_SQL, WORKER)

    @pytest.mark.asyncio
    async def test_add_node_returns_node_id(self, catalog: CitusCatalog, client: MagicMock) -> None:
        client.afetchval.return_value = 7

        assert await catalog.aadd_node(WORKER, 5432) == 7
        client.afetchval.assert_awaited_once_with(ADD_NODE_SQL, WORKER, 5432)

    @pytest.mark.asyncio
    async def test_active_workers(self, catalog: CitusCatalog, client: MagicMock) -> None:
        client.afetch.return_value = [{"node_name": WORKER, "node_port": 5432}]

        assert await catalog.aactive_workers() == (RegisteredNode(nodename=WORKER, nodeport=5432),)
        client.afetch.assert_awaited_once_with(ACTIVE_WORKERS_SQL)

    @pytest.mark.asyncio
    async def test_distributed_tables(self, catalog: CitusCatalog, client: MagicMock) -> None:
        client.afetch.return_value = [
            {"table_name": "events", "citus_table_type": "distributed", "distribution_column": "tenant_id"},
            {"table_name": "countries", "citus_table_type": "reference", "distribution_column": "<none>"},
        ]

        tables = await catalog.adistributed_tables()

        client.afetch.assert_awaited_once_with(DISTRIBUTED_TABLES_SQL)
        assert tables == (
            DistributedTable(table_name="events", citus_table_type="distributed", distribution_column="tenant_id"),
            DistributedTable(table_name="countries", citus_table_type="reference", distribution_column=None),
        )

    def test_sql_never_embeds_values(self) -> None:
        for statement in (NODE_EXISTS_SQL, REMOVE_NODE_SQL, ADD_NODE_SQL):
            assert "$1" in statement


class TestErrorTranslation:
    @pytest.mark.parametrize(
        "error",
        [
            asyncpg.UniqueViolationError("duplicate key value violates unique constraint"),
            asyncpg.InterfaceError("connection is closed"),
            ConnectionRefusedError(111, "Connection refused"),
            TimeoutError(),
        ],
    )
    @pytest.mark.asyncio
    async def test_driver_errors_become_catalog_errors(
        self, catalog: CitusCatalog, client: MagicMock, error: Exception
    ) -> None:
        client.afetchval.side_effect = error

        with pytest.raises(CatalogError) as exc_info:
            await catalog.aadd_node(WORKER, 5432)

        assert exc_info.value.operation == "add node"
        assert exc_info.value.target == "localhost:5432/app"
        assert exc_info.value.cause is error
        assert type(error).__name__ in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_programming_errors_are_not_wrapped(self, catalog: CitusCatalog, client: MagicMock) -> None:
        client.afetch.side_effect = KeyError("nodename")

        with pytest.raises(KeyError):
            await catalog.alist_nodes()


class TestForNode:
    def test_reuses_credentials_for_other_host(self, catalog: CitusCatalog) -> None:
        other = catalog.for_node("coordinator-a", 6432)

        assert isinstance(other, CitusCatalog)
        assert other.target == "coordinator-a:6432/app"
        assert other.client.settings.user == catalog.client.settings.user
