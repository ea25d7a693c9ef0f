"""Snowflake metadata helper."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .base import MetadataHelper
from .models import ColumnInfo, Dataset, EntityNames
from .type_mappers import SnowflakeTypeMapper

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Double-quote a Snowflake identifier, preserving its case."""
    return '"' + name.replace('"', '""') + '"'


def _like_pattern(name: str) -> str:
    """Escape a name for use in a SHOW ... LIKE clause."""
    return name.replace("\\", "\\\\").replace("'", "\\'").replace("_", "\\_").replace("%", "\\%")


class SnowflakeHelper(MetadataHelper):
    """Metadata helper over a ``snowflake.connector`` connection.

    Containers are ``DATABASE.SCHEMA`` pairs; full entity names are quoted
    three-part identifiers.
    """

    DDL_TYPE = "snowflake"
    EXCLUDED_SCHEMAS = {"INFORMATION_SCHEMA"}

    def __init__(self, connection: Any, database: Optional[str] = None):
        super().__init__(connection, SnowflakeTypeMapper())
        self.database = database

    def _dict_cursor_class(self) -> Any:
        try:
            from snowflake.connector import DictCursor
        except ImportError:
            raise ImportError(
                "snowflake-connector-python is required. "
                "Install it with: pip install snowflake-connector-python"
            )
        return DictCursor

    def _execute(self, sql: str, params: Optional[tuple] = None, dict_rows: bool = True) -> List[Any]:
        if dict_rows:
            cursor = self.client.cursor(self._dict_cursor_class())
        else:
            cursor = self.client.cursor()
        try:
            cursor.execute(sql, params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def _scalar(self, sql: str, params: Optional[tuple] = None) -> Any:
        rows = self._execute(sql, params, dict_rows=False)
        if not rows:
            return None
        return rows[0][0]

    def get_full_entity_name(self, schema_id: str, entity_name: str) -> str:
        database, schema = self.split_container(schema_id)
        return ".".join(quote_identifier(part) for part in (database, schema, entity_name))

    def split_container(self, schema_id: str) -> Tuple[Optional[str], str]:
        database, schema = schema_id.split(".", 1)
        return database, schema

    def _schema_ref(self, schema_id: str) -> str:
        database, schema = self.split_container(schema_id)
        return f"{quote_identifier(database)}.{quote_identifier(schema)}"

    def _split_full_name(self, full_name: str) -> Tuple[str, str]:
        """Split a quoted full name into (quoted schema reference, bare entity name)."""
        schema_ref, entity = full_name.rsplit(".", 1)
        return schema_ref, entity[1:-1].replace('""', '"')

    def list_schemas(self) -> List[Dataset]:
        if self.database:
            sql = f"SHOW SCHEMAS IN DATABASE {quote_identifier(self.database)}"
        else:
            sql = "SHOW SCHEMAS IN ACCOUNT"

        with self._listing("schemas", database=self.database):
            rows = self._execute(sql)

        return [
            Dataset(id=f"{row['database_name']}.{row['name']}", database=row["database_name"])
            for row in rows
            if row["name"] not in self.EXCLUDED_SCHEMAS
        ]

    def list_entities(self, schema_id: str) -> EntityNames:
        schema_ref = self._schema_ref(schema_id)
        with self._listing(f"entities of {schema_id}", schema=schema_id):
            tables = self._execute(f"SHOW TABLES IN SCHEMA {schema_ref}")
            views = self._execute(f"SHOW VIEWS IN SCHEMA {schema_ref}")

        return EntityNames(
            tables=[row["name"] for row in tables],
            views=[row["name"] for row in views],
        )

    def get_ddl(self, full_name: str) -> str:
        with self._fetching("DDL", full_name):
            return self._scalar("SELECT GET_DDL('TABLE', %s)", (full_name,)) or ""

    def get_view_ddl(self, full_name: str) -> str:
        with self._fetching("view DDL", full_name):
            return self._scalar("SELECT GET_DDL('VIEW', %s)", (full_name,)) or ""

    def get_rows_count(self, full_name: str) -> int:
        with self._fetching("rows count", full_name):
            return int(self._scalar(f"SELECT COUNT(*) FROM {full_name}") or 0)

    def get_columns(self, full_name: str) -> List[ColumnInfo]:
        with self._fetching("columns", full_name):
            rows = self._execute(f"DESCRIBE TABLE {full_name}")
        return [
            ColumnInfo(
                name=row["name"],
                data_type=row["type"],
                mode="NULLABLE" if row.get("null?", "Y") == "Y" else "REQUIRED",
                is_nullable=row.get("null?", "Y") == "Y",
                description=row.get("comment"),
            )
            for row in rows
        ]

    def get_documents(self, full_name: str, limit: int) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        with self._fetching("documents", full_name):
            rows = self._execute(f"SELECT * FROM {full_name} LIMIT {int(limit)}")
        return [self._row_to_document(row) for row in rows]

    def _show_one(self, kind: str, full_name: str) -> Dict[str, Any]:
        schema_ref, name = self._split_full_name(full_name)
        rows = self._execute(f"SHOW {kind} LIKE '{_like_pattern(name)}' IN SCHEMA {schema_ref}")
        for row in rows:
            if row["name"] == name:
                return row
        return {}

    def get_entity_data(self, full_name: str) -> Dict[str, Any]:
        columns = self.get_columns(full_name)
        with self._fetching("table metadata", full_name):
            table = self._show_one("TABLES", full_name)

        cluster_by = table.get("cluster_by") or ""
        return {
            "code": table.get("name"),
            "transient": table.get("kind") == "TRANSIENT",
            "external": table.get("is_external") == "Y",
            "clusteringKey": _parse_cluster_by(cluster_by),
            "retentionTime": _to_int(table.get("retention_time")),
            "changeTracking": table.get("change_tracking") == "ON",
            "description": table.get("comment") or None,
            "owner": table.get("owner"),
            "columns": [c.to_dict() for c in columns],
        }

    def get_container_data(self, schema_id: str) -> Dict[str, Any]:
        database, schema = self.split_container(schema_id)
        with self._fetching("schema metadata", schema_id):
            rows = self._execute(
                f"SHOW SCHEMAS LIKE '{_like_pattern(schema)}' IN DATABASE {quote_identifier(database)}"
            )

        row = next((r for r in rows if r["name"] == schema), {})
        options = (row.get("options") or "").upper()
        return {
            "name": schema,
            "transient": "TRANSIENT" in options,
            "managedAccess": "MANAGED ACCESS" in options,
            "dataRetention": _to_int(row.get("retention_time")),
            "description": row.get("comment") or None,
        }

    def get_view_data(self, full_name: str) -> Dict[str, Any]:
        with self._fetching("view metadata", full_name):
            view = self._show_one("VIEWS", full_name)

        return {
            "code": view.get("name"),
            "secure": _is_true(view.get("is_secure")),
            "materialized": _is_true(view.get("is_materialized")),
            "selectStatement": view.get("text"),
            "description": view.get("comment") or None,
        }


def _parse_cluster_by(cluster_by: str) -> List[Dict[str, str]]:
    """Parse ``LINEAR(A, B)`` into ``[{"name": "A"}, {"name": "B"}]``."""
    text = cluster_by.strip()
    if not text:
        return []
    if "(" in text and text.endswith(")"):
        text = text[text.index("(") + 1:-1]
    return [{"name": part.strip()} for part in text.split(",") if part.strip()]


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _is_true(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "y", "yes")
    return bool(value)
