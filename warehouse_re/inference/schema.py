"""JSON schema inference from sampled documents."""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, TYPE_CHECKING

from ..errors import InferenceError
from .documents import expand_complex_values
from .shapes import ObjectOf, merge_all, shape_of, to_json_schema

if TYPE_CHECKING:
    from ..warehouses.models import ColumnInfo

logger = logging.getLogger(__name__)

JSON_SCHEMA_DIALECT = "http://json-schema.org/draft-04/schema#"


def infer_schema(
    documents: Sequence[Mapping[str, Any]],
    entity_name: str,
    complex_columns: Iterable[str] = (),
    columns: Sequence["ColumnInfo"] = (),
    type_mapper: Optional[Any] = None,
) -> Dict[str, Any]:
    """Infer one JSON schema describing a batch of sampled rows.

    The property set is the union of keys across all rows; ``required``
    lists the keys present in every row. A field whose type differs between
    rows is typed with every observed type. Values of ``complex_columns``
    that arrive as JSON text are expanded before inference so that
    semi-structured columns are described as nested objects and arrays.

    Args:
        documents: Sampled rows
        entity_name: Used as the schema title
        complex_columns: Names of semi-structured columns
        columns: Declared columns; those missing from the sample are added
            from their declared type
        type_mapper: TypeMapper used to render declared columns

    Returns:
        JSON schema dictionary

    Raises:
        InferenceError: If the documents are not a list of mappings
    """
    if isinstance(documents, (str, bytes)) or not isinstance(documents, Sequence):
        raise InferenceError(
            f"Cannot infer schema of {entity_name}: expected a list of documents",
            details={"entity": entity_name},
        )

    complex_columns = list(complex_columns)
    prepared: List[Dict[str, Any]] = []
    for index, document in enumerate(documents):
        if not isinstance(document, Mapping):
            raise InferenceError(
                f"Cannot infer schema of {entity_name}: document {index} is "
                f"{type(document).__name__}, not an object",
                details={"entity": entity_name, "index": index},
            )
        prepared.append(expand_complex_values(document, complex_columns))

    shape = merge_all(shape_of(document) for document in prepared) or ObjectOf()
    body = to_json_schema(shape)

    schema: Dict[str, Any] = {
        "$schema": JSON_SCHEMA_DIALECT,
        "title": entity_name,
        "type": "object",
        "properties": body.get("properties", {}),
    }
    if body.get("required"):
        schema["required"] = body["required"]

    if type_mapper is not None:
        for column in columns:
            if column.name not in schema["properties"]:
                schema["properties"][column.name] = type_mapper.column_schema(column)

    logger.debug(
        "Inferred %d properties for %s from %d documents",
        len(schema["properties"]),
        entity_name,
        len(prepared),
    )
    return schema
