"""Normalization of sampled documents against an inferred schema."""

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

NOT_JSON = object()


def loads_json(text: str) -> Any:
    """Parse JSON text of any kind, scalars included.

    Returns:
        The parsed value, or ``NOT_JSON`` when the text does not parse
    """
    try:
        return json.loads(text)
    except ValueError:
        return NOT_JSON


def loads_structure(text: str) -> Optional[Any]:
    """Parse text holding a JSON object or array.

    Returns:
        The parsed dict or list, or None when the text is not JSON or holds
        a JSON scalar.
    """
    stripped = text.strip()
    if not stripped or stripped[0] not in "{[":
        return None
    parsed = loads_json(stripped)
    if isinstance(parsed, (dict, list)):
        return parsed
    return None


def expand_complex_values(document: Mapping[str, Any], complex_columns: Iterable[str]) -> Dict[str, Any]:
    """Copy of a document with the JSON text of semi-structured columns parsed.

    Semi-structured columns (Snowflake VARIANT, BigQuery JSON) come back from
    the drivers as JSON text whatever they hold, so scalars are parsed too:
    ``'5'`` becomes ``5`` and ``'"abc"'`` becomes ``"abc"``. Text that is not
    valid JSON is kept as is.
    """
    expanded = dict(document)
    for column in complex_columns:
        value = expanded.get(column)
        if isinstance(value, str):
            parsed = loads_json(value)
            if parsed is not NOT_JSON:
                expanded[column] = parsed
    return expanded


def handle_complex_types_documents(
    schema: Dict[str, Any],
    documents: List[Mapping[str, Any]],
    complex_columns: Iterable[str] = (),
) -> List[Any]:
    """Make sampled documents consistent with the schema inferred from them.

    The JSON text of ``complex_columns`` is parsed first, the same way
    ``infer_schema`` parses it. Then, wherever the schema allows an object or
    array and the document still holds the value as JSON text (Snowflake
    returns VARIANT, OBJECT and ARRAY columns as strings), the text is parsed.
    Strings that do not parse into the expected structure are left untouched.
    The input documents are not modified.

    Args:
        schema: JSON schema produced by ``infer_schema``
        documents: Raw sampled documents
        complex_columns: Semi-structured columns whose text holds any JSON value

    Returns:
        New list of normalized documents
    """
    complex_columns = list(complex_columns)
    return [_normalize(expand_complex_values(document, complex_columns), schema) for document in documents]


def _types(schema: Mapping[str, Any]) -> List[str]:
    schema_type = schema.get("type", [])
    if isinstance(schema_type, str):
        return [schema_type]
    return list(schema_type)


def _normalize(value: Any, schema: Optional[Mapping[str, Any]]) -> Any:
    if not schema:
        return value
    types = _types(schema)

    if isinstance(value, str) and ("object" in types or "array" in types):
        parsed = loads_structure(value)
        if isinstance(parsed, dict) and "object" in types:
            value = parsed
        elif isinstance(parsed, list) and "array" in types:
            value = parsed

    if isinstance(value, Mapping) and "object" in types:
        properties = schema.get("properties", {})
        return {key: _normalize(item, properties.get(key)) for key, item in value.items()}
    if isinstance(value, list) and "array" in types:
        items = schema.get("items")
        return [_normalize(item, items) for item in value]
    return value
