"""Tests for the orchestrator and the host callback surface."""

import threading

import pytest

from warehouse_re import api
from warehouse_re.api import CollectionRequest, EntityPackage, Orchestrator
from warehouse_re.connection import ConnectionInfo
from warehouse_re.errors import ConnectionError, FetchError
from warehouse_re.sampling import SamplingMode, SamplingSettings
from warehouse_re.warehouses import ColumnInfo

from .fixtures import FakeMetadataHelper


def _request(warehouse, sampling, **kwargs):
    return CollectionRequest(
        connection_info=ConnectionInfo(target="bigquery", project_id="fake-project"),
        database_names=list(warehouse.schemas),
        collections={
            schema_id: list(content["tables"]) + [f"{view} (v)" for view in content["views"]]
            for schema_id, content in warehouse.schemas.items()
        },
        sampling=sampling,
        **kwargs,
    )


class TestCollectData:
    """Test package assembly across schemas, tables and views."""

    @pytest.mark.asyncio
    async def test_two_schemas_full_sample(self, orchestrator, warehouse, host_logger, full_sampling):
        """Test that 2 schemas with one 5-row table each give 2 packages of 5 documents."""
        result = await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)

        assert len(result.packages) == 2
        assert [p.collection_name for p in result.packages] == ["orders", "campaigns"]
        assert all(len(p.documents) == 5 for p in result.packages)
        assert result.documents_count == 10
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_table_package_contents(self, orchestrator, warehouse, host_logger, full_sampling):
        result = await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)
        package = result.packages[0].to_dict()

        assert package["dbName"] == "sales"
        assert package["collectionName"] == "orders"
        assert package["ddl"] == {"script": "CREATE TABLE sales.orders (id, name);", "type": "fake"}
        assert package["entityLevel"] == {"description": "table sales.orders"}
        assert package["emptyBucket"] is False
        assert package["bucketInfo"] == {"indexes": [], "database": "fake-project", "description": "schema sales"}
        schema = package["validation"]["jsonSchema"]
        assert schema["properties"]["id"] == {"type": "integer"}
        assert schema["required"] == ["id", "name"]

    @pytest.mark.asyncio
    async def test_absolute_sampling_limits_documents(self, orchestrator, warehouse, host_logger):
        sampling = SamplingSettings(mode=SamplingMode.ABSOLUTE, absolute=2)
        result = await orchestrator.collect_data(_request(warehouse, sampling), host_logger)

        assert all(len(p.documents) == 2 for p in result.packages)
        assert ("documents", ("sales.orders", 2)) in warehouse.calls

    @pytest.mark.asyncio
    async def test_table_and_view(self, orchestrator, warehouse, host_logger, full_sampling):
        """Test that a schema with a table and a view yields a table package and a view package."""
        warehouse.add_view("sales", "big_orders", "SELECT * FROM orders WHERE id > 2")
        request = _request(warehouse, full_sampling)
        request.database_names = ["sales"]

        result = await orchestrator.collect_data(request, host_logger)

        assert len(result.packages) == 2
        table_package, view_package = result.packages
        assert table_package.collection_name == "orders"
        assert view_package.is_view_package

        view_dict = view_package.to_dict()
        assert view_dict["entityLevel"] == {}
        assert "collectionName" not in view_dict
        assert view_dict["views"] == [{
            "name": "big_orders",
            "data": {"selectStatement": "SELECT * FROM orders WHERE id > 2"},
            "ddl": {"script": "CREATE VIEW sales.big_orders AS SELECT * FROM orders WHERE id > 2;", "type": "fake"},
        }]

    @pytest.mark.asyncio
    async def test_unselected_entities_are_skipped(self, orchestrator, warehouse, host_logger, full_sampling):
        warehouse.add_table("sales", "refunds", [{"id": 1}])
        request = _request(warehouse, full_sampling)
        request.collections["sales"] = ["refunds"]

        result = await orchestrator.collect_data(request, host_logger)

        assert [p.collection_name for p in result.packages] == ["refunds", "campaigns"]

    @pytest.mark.asyncio
    async def test_progress_events(self, orchestrator, warehouse, host_logger, full_sampling):
        request = _request(warehouse, full_sampling)
        request.database_names = ["sales"]

        await orchestrator.collect_data(request, host_logger)

        messages = [e["message"] for e in host_logger.events]
        assert messages == [
            "Start getting data from table",
            "Fetching record for JSON schema inference",
            "Schema inference",
            "Data retrieved successfully",
        ]
        assert host_logger.events[0] == {
            "message": "Start getting data from table",
            "containerName": "sales",
            "entityName": "orders",
        }

    @pytest.mark.asyncio
    async def test_connection_info_logged_redacted(self, orchestrator, warehouse, host_logger, full_sampling):
        request = _request(warehouse, full_sampling)
        request.connection_info = ConnectionInfo.from_dict({
            "target": "snowflake", "account": "acme", "user": "me", "password": "hunter2",
        })

        await orchestrator.collect_data(request, host_logger)

        assert host_logger.cleared == 1
        entry = host_logger.entries[0]
        assert entry["label"] == "connectionInfo"
        assert entry["payload"]["password"] == "***"
        assert entry["payload"]["account"] == "acme"

    @pytest.mark.asyncio
    async def test_helper_closed(self, orchestrator, warehouse, host_logger, full_sampling):
        await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)
        assert warehouse.closed

    @pytest.mark.asyncio
    async def test_packages_do_not_share_bucket_info(self, orchestrator, warehouse, host_logger, full_sampling):
        """Test that changing one package's bucketInfo leaves its sibling packages alone."""
        warehouse.add_table("sales", "refunds", [{"id": 1}])
        warehouse.add_view("sales", "big_orders", "SELECT 1")
        request = _request(warehouse, full_sampling)
        request.database_names = ["sales"]

        result = await orchestrator.collect_data(request, host_logger)
        packages = [p.to_dict() for p in result.packages]

        assert len(packages) == 3
        assert packages[0]["bucketInfo"] is not packages[1]["bucketInfo"]
        assert packages[1]["bucketInfo"] is not packages[2]["bucketInfo"]
        assert packages[0]["bucketInfo"]["indexes"] is not packages[1]["bucketInfo"]["indexes"]

        packages[0]["bucketInfo"]["database"] = "changed"
        packages[1]["bucketInfo"]["indexes"].append({"name": "idx"})

        assert packages[1]["bucketInfo"]["database"] == "fake-project"
        assert packages[2]["bucketInfo"] == {"indexes": [], "database": "fake-project", "description": "schema sales"}

    @pytest.mark.asyncio
    async def test_json_column_scalars_parsed(self, orchestrator, warehouse, host_logger, full_sampling):
        """Test that JSON column text holding scalars is typed and returned as those scalars."""
        warehouse.add_table(
            "sales",
            "events",
            [{"v": '{"a": 1}'}, {"v": "5"}, {"v": '"abc"'}],
            columns=[ColumnInfo(name="v", data_type="JSON")],
        )
        request = _request(warehouse, full_sampling)
        request.collections["sales"] = ["events"]
        request.database_names = ["sales"]

        result = await orchestrator.collect_data(request, host_logger)
        package = result.packages[0]

        assert set(package.json_schema["properties"]["v"]["type"]) == {"integer", "string", "object"}
        assert package.documents == [{"v": {"a": 1}}, {"v": 5}, {"v": "abc"}]

    @pytest.mark.asyncio
    async def test_helper_opened_off_the_event_loop(self, warehouse, host_logger, full_sampling):
        """Test that the helper factory runs in an executor thread, not on the loop thread."""
        threads = []

        def factory(info):
            threads.append(threading.get_ident())
            return FakeMetadataHelper(warehouse)

        orchestrator = Orchestrator(helper_factory=factory, fail_fast=False)
        await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)
        await orchestrator.collect_names(ConnectionInfo(), host_logger)
        await orchestrator.test(ConnectionInfo(), host_logger)

        assert len(threads) == 3
        assert threading.get_ident() not in threads



class TestFailureIsolation:
    """Test per-entity failure handling."""

    @pytest.mark.asyncio
    async def test_failed_table_is_skipped(self, orchestrator, warehouse, host_logger, full_sampling):
        """Test that one failing table does not abort the run."""
        warehouse.fail_on("sales.orders")

        result = await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)

        assert [p.collection_name for p in result.packages] == ["campaigns"]
        assert result.warnings == [{
            "containerName": "sales",
            "entityName": "orders",
            "kind": "table",
            "code": "FETCH_ERROR",
            "message": "Failed to get entity of sales.orders: permission denied",
        }]
        assert "Skipped entity" in host_logger.labels("warning")

    @pytest.mark.asyncio
    async def test_failed_view_is_skipped(self, orchestrator, warehouse, host_logger, full_sampling):
        warehouse.add_view("sales", "ok_view", "SELECT 1")
        warehouse.add_view("sales", "bad_view", "SELECT 2")
        warehouse.fail_on("sales.bad_view")

        result = await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)

        view_packages = [p for p in result.packages if p.is_view_package]
        assert len(view_packages) == 1
        assert [v["name"] for v in view_packages[0].views] == ["ok_view"]
        assert result.warnings[0]["kind"] == "view"
        assert result.warnings[0]["entityName"] == "bad_view"

    @pytest.mark.asyncio
    async def test_failed_schema_is_skipped(self, orchestrator, warehouse, host_logger, full_sampling):
        warehouse.fail_on("sales")

        result = await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)

        assert [p.db_name for p in result.packages] == ["marketing"]
        assert result.warnings[0]["kind"] == "container"
        assert result.warnings[0]["containerName"] == "sales"

    @pytest.mark.asyncio
    async def test_fail_fast_aborts(self, warehouse, host_logger, full_sampling):
        """Test that fail-fast turns the first failure into a run failure."""
        warehouse.fail_on("sales.orders")
        orchestrator = Orchestrator(helper_factory=lambda info: FakeMetadataHelper(warehouse), fail_fast=True)

        with pytest.raises(FetchError) as exc_info:
            await orchestrator.collect_data(_request(warehouse, full_sampling), host_logger)

        assert exc_info.value.details == {"entity": "sales.orders"}
        assert warehouse.closed

    @pytest.mark.asyncio
    async def test_request_overrides_fail_fast(self, orchestrator, warehouse, host_logger, full_sampling):
        warehouse.fail_on("sales.orders")

        with pytest.raises(FetchError):
            await orchestrator.collect_data(_request(warehouse, full_sampling, fail_fast=True), host_logger)

    @pytest.mark.asyncio
    async def test_fail_fast_waits_for_sibling_views(self, warehouse, host_logger, full_sampling):
        """Test that a failed view under fail-fast lets the other view fetches finish before closing."""
        warehouse.add_view("sales", "bad_view", "SELECT 1")
        warehouse.add_view("sales", "slow_view", "SELECT 2")
        warehouse.fail_on("sales.bad_view")
        warehouse.slow_on("sales.slow_view", 0.2)
        request = _request(warehouse, full_sampling)
        request.database_names = ["sales"]
        orchestrator = Orchestrator(helper_factory=lambda info: FakeMetadataHelper(warehouse), fail_fast=True)

        with pytest.raises(FetchError) as exc_info:
            await orchestrator.collect_data(request, host_logger)

        assert exc_info.value.details == {"entity": "sales.bad_view"}
        assert warehouse.calls[-1] == ("close", None)
        assert warehouse.calls.count(("fetch", "sales.slow_view")) == 2


class TestCollectNames:
    """Test entity name listing."""

    @pytest.mark.asyncio
    async def test_names(self, orchestrator, warehouse, host_logger):
        warehouse.add_view("sales", "big_orders", "SELECT 1")
        warehouse.schemas["empty"] = {"tables": {}, "views": {}}

        names = await orchestrator.collect_names(ConnectionInfo(), host_logger)

        assert names == [
            {"dbName": "sales", "dbCollections": ["orders", "big_orders (v)"], "isEmpty": False},
            {"dbName": "marketing", "dbCollections": ["campaigns"], "isEmpty": False},
            {"dbName": "empty", "dbCollections": [], "isEmpty": True},
        ]


class TestCollectionRequest:
    """Test parsing of getDbCollectionsData requests."""

    def test_from_dict(self):
        request = CollectionRequest.from_dict({
            "connectionInfo": {"target": "bigquery", "projectId": "p1"},
            "collectionData": {"dataBaseNames": ["sales"], "collections": {"sales": ["orders"]}},
            "recordSamplingSettings": {"active": "relative", "relative": {"value": 50}},
            "failFast": True,
        })
        assert request.connection_info.project_id == "p1"
        assert request.database_names == ["sales"]
        assert request.collections == {"sales": ["orders"]}
        assert request.sampling.mode == SamplingMode.RELATIVE
        assert request.fail_fast is True

    def test_inline_connection_keys(self):
        request = CollectionRequest.from_dict({"target": "snowflake", "account": "acme", "user": "me"})
        assert request.connection_info.account == "acme"
        assert request.database_names == []


class TestHostCallbacks:
    """Test the done(error) / done(None, result) callback surface."""

    def test_get_db_collections_data(self, orchestrator, warehouse, host_logger, done):
        request = {
            "connectionInfo": {"target": "bigquery"},
            "collectionData": {"dataBaseNames": ["sales"], "collections": {"sales": ["orders"]}},
            "recordSamplingSettings": {"active": "absolute", "absolute": {"value": 3}},
        }

        api.get_db_collections_data(request, host_logger, done, orchestrator=orchestrator)

        assert done.error is None
        assert len(done.result) == 1
        assert done.result[0]["collectionName"] == "orders"
        assert len(done.result[0]["documents"]) == 3

    def test_get_db_collections_names(self, orchestrator, host_logger, done):
        api.get_db_collections_names({"target": "bigquery"}, host_logger, done, orchestrator=orchestrator)

        assert done.error is None
        assert [entry["dbName"] for entry in done.result] == ["sales", "marketing"]

    def test_test_connection_success(self, orchestrator, host_logger, done):
        api.test_connection({"target": "bigquery"}, host_logger, done, orchestrator=orchestrator)
        assert done.calls == [()]

    def test_connection_failure_shape(self, host_logger, done):
        """Test that failures reach the host as {message, stack, code}."""
        def refuse(info):
            raise ConnectionError("Failed to connect to BigQuery: invalid grant")

        api.test_connection({"target": "bigquery"}, host_logger, done, orchestrator=Orchestrator(helper_factory=refuse))

        error = done.error
        assert error["message"] == "Failed to connect to BigQuery: invalid grant"
        assert error["code"] == "CONNECTION_ERROR"
        assert "ConnectionError" in error["stack"]
        assert "Reverse Engineering error" in host_logger.labels("error")

    def test_invalid_sampling_reported(self, orchestrator, host_logger, done):
        request = {"recordSamplingSettings": {"active": "absolute", "absolute": {"value": -1}}}

        api.get_db_collections_data(request, host_logger, done, orchestrator=orchestrator)

        assert done.error["code"] == "SAMPLING_SETTINGS_ERROR"

    def test_unknown_error_code(self, host_logger, done):
        def explode(info):
            raise RuntimeError("boom")

        api.get_db_collections_names({}, host_logger, done, orchestrator=Orchestrator(helper_factory=explode))

        assert done.error["code"] == "UNKNOWN_ERROR"
        assert done.error["message"] == "boom"

    def test_disconnect(self, host_logger, done):
        api.disconnect({}, host_logger, done)
        assert done.calls == [()]


class TestEntityPackage:
    """Test package rendering."""

    def test_empty_table_package(self):
        package = EntityPackage(db_name="s", collection_name="t", bucket_info={}, empty_bucket=True)
        assert package.to_dict()["emptyBucket"] is True
        assert package.to_dict()["documents"] == []
