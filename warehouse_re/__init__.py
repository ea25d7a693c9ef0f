"""Reverse engineering of BigQuery and Snowflake schemas into JSON Schema packages."""

__version__ = "0.1.0"

from .api import (
    CollectionRequest,
    CollectionResult,
    EntityPackage,
    Orchestrator,
    disconnect,
    get_db_collections_data,
    get_db_collections_names,
    test_connection,
)
from .connection import ConnectionInfo, WarehouseType
from .errors import ReverseEngineeringError
from .sampling import SamplingMode, SamplingSettings, compute_sample_size

__all__ = [
    "__version__",
    "CollectionRequest",
    "CollectionResult",
    "EntityPackage",
    "Orchestrator",
    "disconnect",
    "get_db_collections_data",
    "get_db_collections_names",
    "test_connection",
    "ConnectionInfo",
    "WarehouseType",
    "ReverseEngineeringError",
    "SamplingMode",
    "SamplingSettings",
    "compute_sample_size",
]
