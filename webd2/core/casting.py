"""Casts values got out of the SQL engine with respect to schema types.

The storage layer hands back textual values: logical columns come as "1"/"0",
numbers as digit strings. Casting turns them into typed Python values.
"""

import math
import re
from collections.abc import Callable, Mapping
from typing import Any

from webd2.core.schema import EntitySchema
from webd2.errors import UsageError

_LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")

Caster = Callable[[str, Any], Any]


def parse_integer(value: Any) -> int | float:
    """Parse a base-10 integer from the start of ``value``.

    Non-numeric input yields ``math.nan`` rather than 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else math.nan
    if value is None:
        return math.nan
    match = _LEADING_INTEGER.match(str(value))
    return int(match.group(1)) if match else math.nan


def get_caster(schema: EntitySchema | Mapping[str, str | None]) -> Caster:
    """Build a ``caster(key, value)`` function for a schema.

    Args:
        schema: EntitySchema or a mapping of column name -> type tag

    Raises:
        UsageError: If schema is missing or not a mapping
    """
    if schema is None:
        raise UsageError('get_caster() you should provide "schema"')
    if isinstance(schema, EntitySchema):
        types = schema.column_types
    elif isinstance(schema, Mapping):
        types = schema
    else:
        raise UsageError("get_caster() schema should be an object")

    def caster(key: str, value: Any) -> Any:
        field_type = types.get(key)

        if field_type == "string":
            return str(value if value is not None else "")
        if field_type == "integer":
            return parse_integer(value)
        if field_type == "boolean":
            # only the textual logical convention, not a truthiness check
            return value == "1"
        return value

    return caster


def cast_types_row(row: Mapping[str, Any], schema) -> dict[str, Any]:
    caster = get_caster(schema)
    return {key: caster(key, value) for key, value in row.items()}


def cast_types_rows(rows: list[Mapping[str, Any]], schema) -> list[dict[str, Any]]:
    caster = get_caster(schema)
    return [{key: caster(key, value) for key, value in row.items()} for row in rows]


def cast_types(rows, schema):
    """Cast a single row or a list of rows."""
    if isinstance(rows, list):
        return cast_types_rows(rows, schema)
    return cast_types_row(rows, schema)
