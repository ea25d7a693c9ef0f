"""Abstract base class for warehouse metadata helpers."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple, Type

from ..errors import FetchError, ListError, ReverseEngineeringError
from ..inference import handle_complex_types_documents, infer_schema
from ..inference.shapes import to_document_value
from .models import ColumnInfo, Dataset, EntityNames, split_entity_names
from .type_mappers import TypeMapper

logger = logging.getLogger(__name__)


class MetadataHelper(ABC):
    """Stateless wrapper over an open warehouse client.

    Subclasses implement the enumeration and fetch operations for one
    warehouse. Every operation converts vendor failures into ``ListError``
    or ``FetchError`` so the orchestrator can handle them uniformly.
    """

    # Dialect tag attached to DDL scripts handed to the host
    DDL_TYPE: str = ""

    # Override in subclasses to exclude system schemas
    EXCLUDED_SCHEMAS: set = set()

    def __init__(self, client: Any, type_mapper: TypeMapper):
        self.client = client
        self.type_mapper = type_mapper

    @abstractmethod
    def list_schemas(self) -> List[Dataset]:
        """List datasets/schemas visible to the credential.

        Raises:
            ListError: On permission denial or any enumeration failure
        """
        pass

    @abstractmethod
    def list_entities(self, schema_id: str) -> EntityNames:
        """List table and view names of a dataset/schema.

        Raises:
            ListError: On permission denial or any enumeration failure
        """
        pass

    @abstractmethod
    def get_ddl(self, full_name: str) -> str:
        """Get the DDL statement of a table."""
        pass

    @abstractmethod
    def get_view_ddl(self, full_name: str) -> str:
        """Get the DDL statement of a view."""
        pass

    @abstractmethod
    def get_rows_count(self, full_name: str) -> int:
        """Get the number of rows in a table."""
        pass

    @abstractmethod
    def get_columns(self, full_name: str) -> List[ColumnInfo]:
        """Get the declared columns of a table or view."""
        pass

    @abstractmethod
    def get_documents(self, full_name: str, limit: int) -> List[Dict[str, Any]]:
        """Get the first ``limit`` rows of a table as documents."""
        pass

    @abstractmethod
    def get_entity_data(self, full_name: str) -> Dict[str, Any]:
        """Get table-level metadata (columns, clustering, description, ...)."""
        pass

    @abstractmethod
    def get_container_data(self, schema_id: str) -> Dict[str, Any]:
        """Get dataset/schema-level metadata."""
        pass

    @abstractmethod
    def get_view_data(self, full_name: str) -> Dict[str, Any]:
        """Get view definition metadata."""
        pass

    @abstractmethod
    def get_full_entity_name(self, schema_id: str, entity_name: str) -> str:
        """Build the fully qualified name of an entity."""
        pass

    @abstractmethod
    def split_container(self, schema_id: str) -> Tuple[Optional[str], str]:
        """Split a container id into (database, schema name)."""
        pass

    def close(self):
        """Release the underlying client."""
        close = getattr(self.client, "close", None)
        if callable(close):
            close()

    def split_entity_names(self, names: Optional[List[str]]) -> EntityNames:
        """Split host collection names into tables and views."""
        return split_entity_names(names)

    def get_complex_columns(self, full_name: str) -> List[str]:
        """Names of the semi-structured columns of a table."""
        return [c.name for c in self.get_columns(full_name) if self.type_mapper.is_complex(c.data_type)]

    def get_json_schema(self, documents: List[Dict[str, Any]], full_name: str) -> Dict[str, Any]:
        """Infer the JSON schema of a table from its sampled documents."""
        columns = self.get_columns(full_name)
        complex_columns = [c.name for c in columns if self.type_mapper.is_complex(c.data_type)]
        return infer_schema(
            documents,
            full_name,
            complex_columns=complex_columns,
            columns=columns,
            type_mapper=self.type_mapper,
        )

    def handle_complex_types_documents(
        self,
        json_schema: Dict[str, Any],
        documents: List[Dict[str, Any]],
        full_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Normalize sampled documents against the inferred schema.

        With ``full_name`` the JSON text of the table's semi-structured
        columns is parsed whatever value it holds, as it was for inference.
        """
        complex_columns = self.get_complex_columns(full_name) if full_name else []
        return handle_complex_types_documents(json_schema, documents, complex_columns)

    def _row_to_document(self, row: Any) -> Dict[str, Any]:
        """Convert a driver row into a JSON-compatible document."""
        return {str(key): to_document_value(value) for key, value in dict(row).items()}

    @contextmanager
    def _listing(self, what: str, **details):
        """Wrap vendor failures during enumeration into ListError."""
        with self._wrap_errors(ListError, f"Failed to list {what}", details):
            yield

    @contextmanager
    def _fetching(self, what: str, full_name: str):
        """Wrap vendor failures during a per-entity fetch into FetchError."""
        with self._wrap_errors(FetchError, f"Failed to get {what} of {full_name}", {"entity": full_name}):
            yield

    @contextmanager
    def _wrap_errors(self, error_cls: Type[ReverseEngineeringError], message: str, details: Dict[str, Any]):
        try:
            yield
        except ReverseEngineeringError:
            raise
        except Exception as e:
            logger.debug("%s: %s", message, e)
            raise error_cls(f"{message}: {e}", details=details) from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
