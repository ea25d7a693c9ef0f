"""Reverse-engineering orchestrator and host callback surface.

``Orchestrator`` sequences the metadata helper, sampling policy and schema
inference per schema and per table, and assembles one ``EntityPackage`` per
table plus one view package per schema that has views. The module-level
functions (``test_connection``, ``get_db_collections_names``,
``get_db_collections_data``, ``disconnect``) expose it through the host's
``done(error)`` / ``done(None, result)`` callback contract.
"""

import asyncio
import copy
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Dict, List, Mapping, Optional, Union

from .config import settings
from .connection import ConnectionInfo, create_helper
from .errors import error_code, format_stack
from .host import Callback, HostLogger, progress_event
from .sampling import SamplingSettings, compute_sample_size
from .warehouses import Entity, EntityKind, MetadataHelper

logger = logging.getLogger(__name__)

HelperFactory = Callable[[ConnectionInfo], MetadataHelper]


@dataclass(frozen=True)
class EntityPackage:
    """Metadata, sample, schema and DDL bundle handed to the host for one entity.

    Table packages carry ``collection_name``; the view package of a schema
    has none and lists its views in ``views``.
    """
    db_name: str
    bucket_info: Dict[str, Any]
    collection_name: Optional[str] = None
    entity_level: Dict[str, Any] = field(default_factory=dict)
    documents: List[Dict[str, Any]] = field(default_factory=list)
    views: List[Dict[str, Any]] = field(default_factory=list)
    ddl: Optional[Dict[str, str]] = None
    json_schema: Optional[Dict[str, Any]] = None
    empty_bucket: bool = False

    @property
    def is_view_package(self) -> bool:
        return self.collection_name is None

    def to_dict(self) -> Dict[str, Any]:
        """Render the package in the host's shape."""
        if self.is_view_package:
            return {
                "dbName": self.db_name,
                "entityLevel": {},
                "views": self.views,
                "emptyBucket": self.empty_bucket,
                "bucketInfo": self.bucket_info,
            }
        return {
            "dbName": self.db_name,
            "collectionName": self.collection_name,
            "entityLevel": self.entity_level,
            "documents": self.documents,
            "views": self.views,
            "ddl": self.ddl,
            "emptyBucket": self.empty_bucket,
            "validation": {"jsonSchema": self.json_schema},
            "bucketInfo": self.bucket_info,
        }


@dataclass
class CollectionResult:
    """Packages of one run plus the entities skipped because they failed."""
    packages: List[EntityPackage] = field(default_factory=list)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def documents_count(self) -> int:
        return sum(len(p.documents) for p in self.packages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "packages": [p.to_dict() for p in self.packages],
            "warnings": self.warnings,
        }


@dataclass
class CollectionRequest:
    """Parsed ``getDbCollectionsData`` request."""
    connection_info: ConnectionInfo
    database_names: List[str] = field(default_factory=list)
    collections: Dict[str, List[str]] = field(default_factory=dict)
    sampling: SamplingSettings = field(default_factory=SamplingSettings.from_settings)
    fail_fast: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CollectionRequest":
        """Parse the host request.

        Connection keys are read from ``connectionInfo`` when present,
        otherwise from the request itself.
        """
        collection_data = data.get("collectionData") or {}
        connection = data.get("connectionInfo")
        if connection is None:
            connection = {k: v for k, v in data.items() if k not in ("collectionData", "recordSamplingSettings")}
        return cls(
            connection_info=_connection_info(connection),
            database_names=list(collection_data.get("dataBaseNames") or []),
            collections=dict(collection_data.get("collections") or {}),
            sampling=SamplingSettings.from_dict(data.get("recordSamplingSettings")),
            fail_fast=data.get("failFast"),
        )


class Orchestrator:
    """Sequences connection, enumeration, sampling and inference for one run.

    Schemas and the tables inside each schema are processed one at a time;
    the views of a schema are fetched concurrently, and every view fetch
    settles before a view failure propagates. By default a failing schema,
    table or view is logged, recorded in ``CollectionResult.warnings`` and
    skipped. With ``fail_fast`` the first failure aborts the run. Each package
    gets its own copy of the schema's ``bucket_info``.

    Args:
        helper_factory: Opens a metadata helper for a connection
        fail_fast: Abort on the first failed entity (default from settings)
    """

    def __init__(self, helper_factory: HelperFactory = create_helper, fail_fast: Optional[bool] = None):
        self.helper_factory = helper_factory
        self.fail_fast = settings.fail_fast if fail_fast is None else fail_fast

    async def connect(self, connection_info: ConnectionInfo, host_logger: HostLogger) -> MetadataHelper:
        """Open a metadata helper; the vendor client is created in the executor."""
        host_logger.clear()
        host_logger.log("info", connection_info.to_log_payload(), "connectionInfo", connection_info.hidden_keys)
        return await self._run(self.helper_factory, connection_info)

    async def _run(self, func: Callable, *args) -> Any:
        """Run a blocking helper call in the default executor."""
        return await asyncio.get_event_loop().run_in_executor(None, functools.partial(func, *args))

    async def test(self, connection_info: ConnectionInfo, host_logger: HostLogger) -> None:
        """Connect and list schemas; raises on any failure."""
        with await self.connect(connection_info, host_logger) as helper:
            await self._run(helper.list_schemas)

    async def collect_names(self, connection_info: ConnectionInfo, host_logger: HostLogger) -> List[Dict[str, Any]]:
        """List every schema with its table and view names, without fetching data."""
        names = []
        with await self.connect(connection_info, host_logger) as helper:
            datasets = await self._run(helper.list_schemas)
            for dataset in datasets:
                entities = await self._run(helper.list_entities, dataset.id)
                names.append({
                    "dbName": dataset.id,
                    "dbCollections": entities.to_collection_names(),
                    "isEmpty": entities.is_empty(),
                })
        return names

    async def collect_data(self, request: CollectionRequest, host_logger: HostLogger) -> CollectionResult:
        """Build the packages for the selected schemas and entities."""
        fail_fast = self.fail_fast if request.fail_fast is None else request.fail_fast
        result = CollectionResult()

        with await self.connect(request.connection_info, host_logger) as helper:
            for schema_id in request.database_names:
                try:
                    packages = await self._collect_schema(helper, schema_id, request, host_logger, result, fail_fast)
                except Exception as e:
                    if fail_fast:
                        raise
                    self._record_warning(host_logger, result, schema_id, e)
                    continue
                result.packages.extend(packages)

        return result

    async def _collect_schema(
        self,
        helper: MetadataHelper,
        schema_id: str,
        request: CollectionRequest,
        host_logger: HostLogger,
        result: CollectionResult,
        fail_fast: bool,
    ) -> List[EntityPackage]:
        entities = helper.split_entity_names(request.collections.get(schema_id))
        container_data = await self._run(helper.get_container_data, schema_id)
        database, schema_name = helper.split_container(schema_id)
        bucket_info = {"indexes": [], "database": database, **container_data}

        packages = []
        for table in entities.tables:
            try:
                package = await self._collect_table(
                    helper, schema_id, schema_name, table, copy.deepcopy(bucket_info), request.sampling, host_logger
                )
            except Exception as e:
                if fail_fast:
                    raise
                self._record_warning(host_logger, result, schema_id, e, Entity(table, schema_id, EntityKind.TABLE))
                continue
            packages.append(package)

        fetched = await asyncio.gather(
            *[self._collect_view(helper, schema_id, view, host_logger) for view in entities.views],
            return_exceptions=True,
        )
        views = []
        for view, outcome in zip(entities.views, fetched):
            if isinstance(outcome, BaseException):
                if fail_fast:
                    raise outcome
                self._record_warning(host_logger, result, schema_id, outcome, Entity(view, schema_id, EntityKind.VIEW))
            else:
                views.append(outcome)

        if views:
            packages.append(EntityPackage(db_name=schema_name, bucket_info=copy.deepcopy(bucket_info), views=views))
        return packages

    async def _collect_table(
        self,
        helper: MetadataHelper,
        schema_id: str,
        schema_name: str,
        table: str,
        bucket_info: Dict[str, Any],
        sampling: SamplingSettings,
        host_logger: HostLogger,
    ) -> EntityPackage:
        full_name = helper.get_full_entity_name(schema_id, table)
        host_logger.progress(progress_event("Start getting data from table", schema_id, table))

        ddl = await self._run(helper.get_ddl, full_name)
        quantity = await self._run(helper.get_rows_count, full_name)
        sample_size = compute_sample_size(quantity, sampling)
        documents = await self._run(helper.get_documents, full_name, sample_size)
        logger.debug("Sampled %d of %d rows from %s", len(documents), quantity, full_name)

        host_logger.progress(progress_event("Fetching record for JSON schema inference", schema_id, table))

        json_schema = await self._run(helper.get_json_schema, documents, full_name)
        entity_data = await self._run(helper.get_entity_data, full_name)

        host_logger.progress(progress_event("Schema inference", schema_id, table))

        handled_documents = await self._run(helper.handle_complex_types_documents, json_schema, documents, full_name)

        host_logger.progress(progress_event("Data retrieved successfully", schema_id, table))

        return EntityPackage(
            db_name=schema_name,
            collection_name=table,
            entity_level=entity_data,
            documents=handled_documents,
            ddl={"script": ddl, "type": helper.DDL_TYPE},
            json_schema=json_schema,
            bucket_info=bucket_info,
        )

    async def _collect_view(
        self,
        helper: MetadataHelper,
        schema_id: str,
        view: str,
        host_logger: HostLogger,
    ) -> Dict[str, Any]:
        full_name = helper.get_full_entity_name(schema_id, view)
        host_logger.progress(progress_event("Start getting data from view", schema_id, view))

        ddl = await self._run(helper.get_view_ddl, full_name)
        view_data = await self._run(helper.get_view_data, full_name)

        host_logger.progress(progress_event("Data retrieved successfully", schema_id, view))

        return {
            "name": view,
            "data": view_data,
            "ddl": {"script": ddl, "type": helper.DDL_TYPE},
        }

    def _record_warning(
        self,
        host_logger: HostLogger,
        result: CollectionResult,
        schema_id: str,
        error: BaseException,
        entity: Optional[Entity] = None,
    ) -> None:
        warning = {
            "containerName": schema_id,
            "entityName": entity.name if entity else "",
            "kind": entity.kind.value if entity else "container",
            "code": error_code(error),
            "message": str(error),
        }
        result.warnings.append(warning)
        host_logger.log("warning", {**warning, "stack": format_stack(error)}, "Skipped entity")
        logger.warning("Skipping %s %s: %s", warning["kind"], entity.display_name if entity else schema_id, error)


def prepare_error(host_logger: HostLogger, error: BaseException) -> Dict[str, str]:
    """Log an error and reduce it to the host's ``{message, stack, code}`` shape."""
    err = {
        "message": getattr(error, "message", None) or str(error),
        "stack": format_stack(error),
        "code": error_code(error),
    }
    host_logger.log("error", err, "Reverse Engineering error")
    return err


def _connection_info(value: Union[ConnectionInfo, Mapping[str, Any]]) -> ConnectionInfo:
    if isinstance(value, ConnectionInfo):
        return value
    return ConnectionInfo.from_dict(value)


def _complete(run: Callable[[], Coroutine], host_logger: HostLogger, done: Callback, has_result: bool = True) -> None:
    """Run a coroutine factory and report its outcome through ``done``."""
    try:
        result = asyncio.run(run())
    except Exception as e:
        done(prepare_error(host_logger, e))
        return
    if has_result:
        done(None, result)
    else:
        done()


def test_connection(
    connection_info: Union[ConnectionInfo, Mapping[str, Any]],
    host_logger: HostLogger,
    done: Callback,
    orchestrator: Optional[Orchestrator] = None,
) -> None:
    """Check that the warehouse is reachable: ``done()`` or ``done(error)``."""
    orchestrator = orchestrator or Orchestrator()

    async def run():
        await orchestrator.test(_connection_info(connection_info), host_logger)

    _complete(run, host_logger, done, has_result=False)


def disconnect(connection_info: Any, host_logger: HostLogger, done: Callback) -> None:
    """Sessions are closed after every call, so there is nothing to tear down."""
    done()


def get_db_collections_names(
    connection_info: Union[ConnectionInfo, Mapping[str, Any]],
    host_logger: HostLogger,
    done: Callback,
    host_services: Any = None,
    orchestrator: Optional[Orchestrator] = None,
) -> None:
    """List schemas with their entity names: ``done(None, [{dbName, dbCollections, isEmpty}])``.

    ``host_services`` is accepted for compatibility with the host contract.
    """
    orchestrator = orchestrator or Orchestrator()

    async def run():
        return await orchestrator.collect_names(_connection_info(connection_info), host_logger)

    _complete(run, host_logger, done)


def get_db_collections_data(
    request: Mapping[str, Any],
    host_logger: HostLogger,
    done: Callback,
    host_services: Any = None,
    orchestrator: Optional[Orchestrator] = None,
) -> None:
    """Collect packages for the selected entities: ``done(None, [package, ...])``.

    Skipped entities are reported through ``host_logger`` as warnings.
    ``host_services`` is accepted for compatibility with the host contract.
    """
    orchestrator = orchestrator or Orchestrator()

    async def run():
        result = await orchestrator.collect_data(CollectionRequest.from_dict(request), host_logger)
        return [package.to_dict() for package in result.packages]

    _complete(run, host_logger, done)
