"""Warehouse-specific type mapping strategies.

Maps declared column types to JSON Schema types and tells the inference
engine which columns hold semi-structured values that must be expanded.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from .models import ColumnInfo


class TypeMapper(ABC):
    """Abstract base class for warehouse type mapping."""

    # Upper-cased type names whose values are nested or semi-structured
    COMPLEX_TYPES: set = set()

    @abstractmethod
    def to_json_type(self, db_type: str) -> str:
        """Convert a warehouse type to a JSON Schema type."""
        pass

    def is_complex(self, db_type: str) -> bool:
        """Whether values of this type must be expanded into nested shapes."""
        base = db_type.upper().split("(")[0].split("<")[0].strip()
        return base in self.COMPLEX_TYPES

    def column_schema(self, column: ColumnInfo) -> Dict[str, Any]:
        """JSON Schema fragment for a declared column (used when no sample covers it)."""
        json_type = self.to_json_type(column.data_type)
        schema: Dict[str, Any] = {"type": json_type}
        if column.nested_fields:
            schema = {
                "type": "object",
                "properties": {f.name: self.column_schema(f) for f in column.nested_fields},
            }
        if column.is_repeated:
            schema = {"type": "array", "items": schema}
        if column.description:
            schema["description"] = column.description
        return schema


class BigQueryTypeMapper(TypeMapper):
    """Type mapper for BigQuery standard SQL types."""

    COMPLEX_TYPES = {"RECORD", "STRUCT", "JSON", "ARRAY"}

    def to_json_type(self, db_type: str) -> str:
        type_upper = db_type.upper()

        if type_upper in ("RECORD", "STRUCT") or type_upper.startswith("STRUCT<"):
            return "object"
        elif type_upper.startswith("ARRAY"):
            return "array"
        elif type_upper in ("INTEGER", "INT64"):
            return "integer"
        elif any(t in type_upper for t in ["FLOAT", "NUMERIC", "BIGNUMERIC", "DECIMAL", "BIGDECIMAL"]):
            return "number"
        elif type_upper in ("BOOLEAN", "BOOL"):
            return "boolean"
        elif type_upper == "JSON":
            return "object"
        return "string"


class SnowflakeTypeMapper(TypeMapper):
    """Type mapper for Snowflake data types."""

    COMPLEX_TYPES = {"VARIANT", "OBJECT", "ARRAY", "GEOGRAPHY", "GEOMETRY"}

    def to_json_type(self, db_type: str) -> str:
        type_upper = db_type.upper()

        if type_upper.startswith("OBJECT") or type_upper in ("VARIANT", "GEOGRAPHY", "GEOMETRY"):
            return "object"
        elif type_upper.startswith("ARRAY"):
            return "array"
        elif "INT" in type_upper or type_upper.startswith("NUMBER") or type_upper.startswith("NUMERIC") \
                or type_upper.startswith("DECIMAL"):
            if _has_scale(type_upper):
                return "number"
            return "integer"
        elif any(t in type_upper for t in ["FLOAT", "DOUBLE", "REAL"]):
            return "number"
        elif "BOOL" in type_upper:
            return "boolean"
        return "string"


def _has_scale(type_upper: str) -> bool:
    """NUMBER(38,2) has a scale, NUMBER(38,0) and NUMBER do not."""
    if "(" not in type_upper or "," not in type_upper:
        return False
    scale = type_upper.split(",", 1)[1].rstrip(") ").strip()
    return scale not in ("", "0")

