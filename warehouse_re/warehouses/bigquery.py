"""BigQuery metadata helper."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .base import MetadataHelper
from .models import ColumnInfo, Dataset, EntityNames
from .type_mappers import BigQueryTypeMapper

logger = logging.getLogger(__name__)

TABLE_TYPES = {"TABLE", "EXTERNAL", "SNAPSHOT"}
VIEW_TYPES = {"VIEW", "MATERIALIZED_VIEW"}


class BigQueryHelper(MetadataHelper):
    """Metadata helper over a ``google.cloud.bigquery.Client``.

    Containers are datasets of the client's project; full entity names are
    ``project.dataset.table``.
    """

    DDL_TYPE = "bigquery"

    def __init__(self, client: Any, location: Optional[str] = None):
        super().__init__(client, BigQueryTypeMapper())
        self.location = location

    @property
    def project_id(self) -> str:
        return self.client.project

    def _get_bigquery(self) -> Any:
        """Lazy import of BigQuery module."""
        try:
            from google.cloud import bigquery
        except ImportError:
            raise ImportError(
                "google-cloud-bigquery is required. "
                "Install with: pip install google-cloud-bigquery"
            )
        return bigquery

    def get_full_entity_name(self, schema_id: str, entity_name: str) -> str:
        return f"{self.project_id}.{schema_id}.{entity_name}"

    def split_container(self, schema_id: str) -> Tuple[Optional[str], str]:
        return self.project_id, schema_id

    def _split_full_name(self, full_name: str) -> Tuple[str, str, str]:
        # Domain-scoped project ids ("example.com:project") contain dots
        project, dataset, table = full_name.rsplit(".", 2)
        return project, dataset, table

    def _query(self, sql: str, params: Optional[List[Any]] = None) -> List[Any]:
        bigquery = self._get_bigquery()
        job_config = bigquery.QueryJobConfig(query_parameters=params or [])
        job = self.client.query(sql, job_config=job_config, location=self.location)
        return list(job.result())

    def list_schemas(self) -> List[Dataset]:
        with self._listing("datasets", project=self.project_id):
            datasets = list(self.client.list_datasets())
        return [Dataset(id=d.dataset_id, database=d.project) for d in datasets]

    def list_entities(self, schema_id: str) -> EntityNames:
        entities = EntityNames()
        with self._listing(f"tables of {schema_id}", schema=schema_id):
            tables = list(self.client.list_tables(f"{self.project_id}.{schema_id}"))

        for table in tables:
            if table.table_type in VIEW_TYPES:
                entities.views.append(table.table_id)
            elif table.table_type in TABLE_TYPES:
                entities.tables.append(table.table_id)
            else:
                logger.debug("Skipping %s of type %s", table.table_id, table.table_type)
        return entities

    def get_ddl(self, full_name: str) -> str:
        with self._fetching("DDL", full_name):
            return self._fetch_ddl(full_name)

    def get_view_ddl(self, full_name: str) -> str:
        with self._fetching("view DDL", full_name):
            return self._fetch_ddl(full_name)

    def _fetch_ddl(self, full_name: str) -> str:
        bigquery = self._get_bigquery()
        project, dataset, table = self._split_full_name(full_name)
        rows = self._query(
            f"SELECT ddl FROM `{project}.{dataset}`.INFORMATION_SCHEMA.TABLES "
            f"WHERE table_name = @table_name",
            [bigquery.ScalarQueryParameter("table_name", "STRING", table)],
        )
        if not rows:
            return ""
        return rows[0]["ddl"] or ""

    def get_rows_count(self, full_name: str) -> int:
        with self._fetching("rows count", full_name):
            table = self.client.get_table(full_name)
            return int(table.num_rows or 0)

    def get_columns(self, full_name: str) -> List[ColumnInfo]:
        with self._fetching("columns", full_name):
            table = self.client.get_table(full_name)
            return [self._schema_field_to_column(f) for f in table.schema]

    def _schema_field_to_column(self, field: Any) -> ColumnInfo:
        """Convert BigQuery schema field to ColumnInfo."""
        nested_fields = []
        if field.field_type in ("RECORD", "STRUCT") and field.fields:
            nested_fields = [self._schema_field_to_column(f) for f in field.fields]

        mode = field.mode or "NULLABLE"
        return ColumnInfo(
            name=field.name,
            data_type=field.field_type,
            mode=mode,
            is_nullable=mode != "REQUIRED",
            description=field.description,
            nested_fields=nested_fields,
        )

    def get_documents(self, full_name: str, limit: int) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        with self._fetching("documents", full_name):
            rows = self._query(f"SELECT * FROM `{full_name}` LIMIT {int(limit)}")
            return [self._row_to_document(row.items()) for row in rows]

    def get_entity_data(self, full_name: str) -> Dict[str, Any]:
        with self._fetching("table metadata", full_name):
            table = self.client.get_table(full_name)

        data: Dict[str, Any] = {
            "code": table.table_id,
            "tableType": table.table_type,
            "description": table.description,
            "friendlyName": table.friendly_name,
            "labels": [{"labelKey": k, "labelValue": v} for k, v in (table.labels or {}).items()],
            "expiration": table.expires.isoformat() if table.expires else None,
            "clusteringKey": [{"name": name} for name in (table.clustering_fields or [])],
            "requirePartitionFilter": bool(table.require_partition_filter),
            "columns": [self._schema_field_to_column(f).to_dict() for f in table.schema],
        }

        partitioning = table.time_partitioning
        if partitioning is not None:
            data["partitioning"] = "By time-unit column" if partitioning.field else "By ingestion time"
            data["partitioningType"] = partitioning.type_
            data["partitioningField"] = partitioning.field
            data["partitionExpirationMs"] = partitioning.expiration_ms
        elif table.range_partitioning is not None:
            range_partitioning = table.range_partitioning
            data["partitioning"] = "By integer-range"
            data["partitioningField"] = range_partitioning.field
            data["rangeOptions"] = {
                "start": range_partitioning.range_.start,
                "end": range_partitioning.range_.end,
                "interval": range_partitioning.range_.interval,
            }
        else:
            data["partitioning"] = "No partitioning"

        return data

    def get_container_data(self, schema_id: str) -> Dict[str, Any]:
        full_name = f"{self.project_id}.{schema_id}"
        with self._fetching("dataset metadata", full_name):
            dataset = self.client.get_dataset(full_name)

        return {
            "name": dataset.dataset_id,
            "description": dataset.description,
            "friendlyName": dataset.friendly_name,
            "location": dataset.location,
            "labels": [{"labelKey": k, "labelValue": v} for k, v in (dataset.labels or {}).items()],
            "defaultTableExpirationMs": dataset.default_table_expiration_ms,
            "defaultPartitionExpirationMs": dataset.default_partition_expiration_ms,
        }

    def get_view_data(self, full_name: str) -> Dict[str, Any]:
        with self._fetching("view metadata", full_name):
            view = self.client.get_table(full_name)

        materialized = view.table_type == "MATERIALIZED_VIEW"
        data: Dict[str, Any] = {
            "code": view.table_id,
            "materialized": materialized,
            "selectStatement": view.mview_query if materialized else view.view_query,
            "description": view.description,
            "labels": [{"labelKey": k, "labelValue": v} for k, v in (view.labels or {}).items()],
            "columns": [self._schema_field_to_column(f).to_dict() for f in view.schema],
        }
        if materialized:
            data["enableRefresh"] = view.mview_enable_refresh
            data["refreshInterval"] = view.mview_refresh_interval.total_seconds() * 1000 \
                if view.mview_refresh_interval else None
        return data
