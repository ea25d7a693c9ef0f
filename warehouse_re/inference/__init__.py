"""Schema inference from sampled warehouse rows."""

from .shapes import Scalar, ArrayOf, ObjectOf, Union, shape_of, merge, merge_all, to_json_schema
from .schema import infer_schema, JSON_SCHEMA_DIALECT
from .documents import handle_complex_types_documents, loads_json, loads_structure, NOT_JSON

__all__ = [
    # Shapes
    "Scalar",
    "ArrayOf",
    "ObjectOf",
    "Union",
    "shape_of",
    "merge",
    "merge_all",
    "to_json_schema",
    # Inference
    "infer_schema",
    "JSON_SCHEMA_DIALECT",
    "handle_complex_types_documents",
    "loads_json",
    "loads_structure",
    "NOT_JSON",
]
