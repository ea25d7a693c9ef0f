"""Structural shapes of sampled documents.

A shape is one of four variants:

- ``Scalar``: a JSON primitive (null, boolean, integer, number, string)
- ``ArrayOf``: an array whose items share one (possibly union) shape
- ``ObjectOf``: an object with per-key shapes and the keys seen in every row
- ``Union``: several of the above, at most one per JSON type

Merging two shapes of different JSON types always produces a ``Union``, so
a field seen as ``1`` in one row and ``"x"`` in another keeps both types.
"""

import base64
import datetime
import decimal
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union as TypingUnion

# Canonical order of JSON types inside a union
TYPE_ORDER = ("null", "boolean", "integer", "number", "string", "object", "array")


@dataclass(frozen=True)
class Scalar:
    type: str

    @property
    def kind(self) -> str:
        return self.type


@dataclass(frozen=True)
class ArrayOf:
    items: Optional["Shape"] = None  # None for arrays that were always empty

    @property
    def kind(self) -> str:
        return "array"


@dataclass(frozen=True)
class ObjectOf:
    properties: Dict[str, "Shape"] = field(default_factory=dict)
    required: Tuple[str, ...] = ()

    @property
    def kind(self) -> str:
        return "object"


@dataclass(frozen=True)
class Union:
    options: Tuple["Shape", ...]

    @property
    def kind(self) -> str:
        return "union"

    @property
    def types(self) -> List[str]:
        return [option.kind for option in self.options]


Shape = TypingUnion[Scalar, ArrayOf, ObjectOf, Union]


def shape_of(value: Any) -> Shape:
    """Describe the structure of a single value."""
    if value is None:
        return Scalar("null")
    if isinstance(value, bool):
        return Scalar("boolean")
    if isinstance(value, int):
        return Scalar("integer")
    if isinstance(value, (float, decimal.Decimal)):
        return Scalar("number")
    if isinstance(value, Mapping):
        return ObjectOf(
            properties={str(key): shape_of(item) for key, item in value.items()},
            required=tuple(str(key) for key in value.keys()),
        )
    if isinstance(value, (list, tuple)):
        return ArrayOf(items=merge_all(shape_of(item) for item in value))
    # str, dates, bytes and anything else render as strings in documents
    return Scalar("string")


def merge(left: Optional[Shape], right: Optional[Shape]) -> Optional[Shape]:
    """Combine two shapes into one that describes both."""
    if left is None:
        return right
    if right is None:
        return left

    by_kind: Dict[str, Shape] = {}
    for option in _options(left) + _options(right):
        existing = by_kind.get(option.kind)
        by_kind[option.kind] = option if existing is None else _merge_same_kind(existing, option)

    options = tuple(by_kind[kind] for kind in TYPE_ORDER if kind in by_kind)
    if len(options) == 1:
        return options[0]
    return Union(options=options)


def merge_all(shapes: Iterable[Shape]) -> Optional[Shape]:
    """Fold a sequence of shapes with ``merge``."""
    result: Optional[Shape] = None
    for shape in shapes:
        result = merge(result, shape)
    return result


def _options(shape: Shape) -> List[Shape]:
    if isinstance(shape, Union):
        return list(shape.options)
    return [shape]


def _merge_same_kind(left: Shape, right: Shape) -> Shape:
    if isinstance(left, ObjectOf) and isinstance(right, ObjectOf):
        properties = dict(left.properties)
        for key, shape in right.properties.items():
            properties[key] = merge(properties.get(key), shape)
        right_required = set(right.required)
        required = tuple(key for key in left.required if key in right_required)
        return ObjectOf(properties=properties, required=required)
    if isinstance(left, ArrayOf) and isinstance(right, ArrayOf):
        return ArrayOf(items=merge(left.items, right.items))
    return left


def to_json_schema(shape: Optional[Shape]) -> Dict[str, Any]:
    """Render a shape as a JSON Schema fragment."""
    if shape is None:
        return {}
    if isinstance(shape, Scalar):
        return {"type": shape.type}
    if isinstance(shape, ArrayOf):
        schema: Dict[str, Any] = {"type": "array"}
        if shape.items is not None:
            schema["items"] = to_json_schema(shape.items)
        return schema
    if isinstance(shape, ObjectOf):
        schema = {
            "type": "object",
            "properties": {key: to_json_schema(value) for key, value in shape.properties.items()},
        }
        if shape.required:
            schema["required"] = list(shape.required)
        return schema

    schema = {"type": shape.types}
    for option in shape.options:
        if isinstance(option, (ObjectOf, ArrayOf)):
            fragment = to_json_schema(option)
            fragment.pop("type")
            schema.update(fragment)
    return schema


def to_document_value(value: Any) -> Any:
    """Convert a driver value into a JSON-compatible document value."""
    if isinstance(value, Mapping):
        return {str(key): to_document_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_document_value(item) for item in value]
    if isinstance(value, decimal.Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value
