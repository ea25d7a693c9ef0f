"""Warehouse metadata helpers.

This module provides a warehouse-agnostic helper interface with
specific implementations for BigQuery and Snowflake.
"""

from .models import ColumnInfo, Dataset, Entity, EntityKind, EntityNames, split_entity_names, VIEW_SUFFIX
from .base import MetadataHelper
from .type_mappers import TypeMapper, BigQueryTypeMapper, SnowflakeTypeMapper
from .bigquery import BigQueryHelper
from .snowflake import SnowflakeHelper

__all__ = [
    # Data models
    "ColumnInfo",
    "Dataset",
    "Entity",
    "EntityKind",
    "EntityNames",
    "split_entity_names",
    "VIEW_SUFFIX",
    # Base classes
    "MetadataHelper",
    # Type mappers
    "TypeMapper",
    "BigQueryTypeMapper",
    "SnowflakeTypeMapper",
    # Helpers
    "BigQueryHelper",
    "SnowflakeHelper",
]
