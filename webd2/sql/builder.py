"""SQL string generation for a single entity schema.

The builder produces plain SQL text; it performs no I/O. Values are inlined:
``boolean`` and ``integer`` values bare, everything else single-quoted with
embedded single quotes replaced by a space.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from webd2.core.schema import EntitySchema
from webd2.errors import UsageError

logger = logging.getLogger(__name__)

# Special projections
ID_ONLY = "id"
ID_AND_RELATIONS = "idAndRelations"

_NUMERIC_ID = re.compile(r"^-?\d+$")


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def quote_value_if_string(field_type: str | None, value: Any) -> str:
    """Render a value for inlining into SQL according to its field type.

    Examples:
        >>> quote_value_if_string("integer", 33)
        '33'
        >>> quote_value_if_string("string", "it's")
        "'it s'"
    """
    if value is None:
        raise UsageError(f"string-type value for SQL query cannot be {value}")

    if field_type in ("boolean", "integer"):
        return _as_text(value)

    # untyped and undeclared fields are treated as strings
    return "'" + _as_text(value).replace("'", " ") + "'"


def render_id(value: Any) -> str:
    """Render a primary or foreign key value: bare when numeric, quoted otherwise."""
    if isinstance(value, Mapping):
        value = value.get("id")
    if value is None:
        raise UsageError("id value for SQL query cannot be None")
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    text = str(value)
    if _NUMERIC_ID.match(text):
        return text
    return quote_value_if_string("string", text)


def where_predicates(where: Mapping[str, Any], schema: EntitySchema | None) -> list[str]:
    """Equality predicates for a flat ``where`` mapping.

    Keys naming a belongs-to field (or its foreign key column) compare the
    foreign key column with the bare id.
    """
    column_types = schema.column_types if schema is not None else {}
    belongs_to = {descr.name: descr for descr in schema.belongs_to} if schema is not None else {}
    fk_fields = {descr.fk_field for descr in belongs_to.values()}

    predicates = []
    for field_name, value in where.items():
        if value is None:
            raise UsageError(f"_where_part(): value of '{field_name}' key is undefined")

        if field_name in belongs_to:
            predicates.append(f"{belongs_to[field_name].fk_field}={render_id(value)}")
        elif field_name in fk_fields and field_name not in column_types:
            predicates.append(f"{field_name}={render_id(value)}")
        else:
            predicates.append(f"{field_name}={quote_value_if_string(column_types.get(field_name), value)}")
    return predicates


def ids_predicate(column: str, ids: list[Any]) -> str:
    """``<column> IN (...)``; an empty list matches nothing."""
    if not ids:
        return "1=0"
    return f"{column} IN ({', '.join(render_id(value) for value in ids)})"


@dataclass(frozen=True)
class WhereIn:
    """Sub-select correlating the queried table with a parent table.

    Exactly one mode applies:

    - belongs-to parent (``parent_fk_name``):
      ``<id> IN (SELECT DISTINCT <parent_fk_name> FROM <parent_table_name> ...)``
    - has-many parent (``relation_fk_name`` + ``parent_id_field_name``):
      ``<relation_fk_name> IN (SELECT <parent_id_field_name> FROM <parent_table_name> ...)``

    ``parent_where`` and ``parent_ids`` constrain the parent rows (``parent_ids``
    by ``parent_id_field_name``); ``parent_schema`` supplies the parent's column
    types for quoting them.
    """

    parent_table_name: str | None = None
    parent_fk_name: str | None = None
    relation_fk_name: str | None = None
    parent_id_field_name: str | None = None
    parent_where: Mapping[str, Any] | None = None
    parent_ids: list[Any] | None = None
    parent_schema: EntitySchema | None = None


class SqlBuilder:
    """Generates select/insert/update/delete statements for one entity schema."""

    def __init__(self, schema: EntitySchema | Mapping[str, Any]):
        if not isinstance(schema, EntitySchema):
            schema = EntitySchema.from_dict(dict(schema))

        self.schema = schema
        self.id_field_name = schema.id_field
        self.id_field_clause = "id" if schema.id_field == "id" else f"{schema.id_field} as id"
        self.table_name = schema.table_name

        self.belongs_to_descriptors = schema.belongs_to
        self.columns = schema.column_types
        self.columns_names = list(self.columns)

    def get_table_name(self) -> str:
        if not self.table_name:
            raise UsageError("tableName is not provided")
        return self.table_name

    def _get_relations_lines_for_update(self, data: Mapping[str, Any]) -> list[str]:
        return [
            f"{rel.fk_field}={render_id(data[rel.name])}" for rel in self.belongs_to_descriptors if rel.name in data
        ]

    def generate_field_equals_data_lines(self, data: Mapping[str, Any]) -> list[str]:
        """``field=value`` lines for declared columns and belongs-to references present in data."""
        lines = [
            f"{name}={quote_value_if_string(field_type, data[name])}"
            for name, field_type in self.columns.items()
            if name in data
        ]
        return lines + self._get_relations_lines_for_update(data)

    def _generate_foreign_keys_lines(self, fields_only: str | list[str] | None = None) -> list[str]:
        relations = self.belongs_to_descriptors
        if fields_only:
            wanted = _as_list(fields_only)
            relations = [rel for rel in relations if rel.name in wanted]
        return [f"{rel.fk_field} as {rel.fk_as}" for rel in relations]

    def generate_select_fields_part(self, fields_only: str | list[str] | None = None) -> str:
        """Projection of a SELECT statement.

        Examples:
            None                -> 'PersID as id, name, cardcode, GrpID as userGroupId'
            ['name', 'hide']    -> 'name, hide'
            'id'                -> 'PersID as id'
            'idAndRelations'    -> 'PersID as id, GrpID as userGroupId'
        """
        if fields_only == ID_ONLY:
            return self.id_field_clause

        if fields_only == ID_AND_RELATIONS:
            return ", ".join([self.id_field_clause] + self._generate_foreign_keys_lines())

        if fields_only:
            wanted = _as_list(fields_only)
            parts = [self.id_field_clause] if ID_ONLY in wanted else []
            parts += [name for name in self.columns_names if name in wanted]
            parts += self._generate_foreign_keys_lines(wanted)
            return ", ".join(parts)

        return ", ".join([self.id_field_clause] + self.columns_names + self._generate_foreign_keys_lines())

    def _where_in_predicate(self, where_in: WhereIn) -> str:
        if not where_in.parent_table_name:
            raise UsageError("parent_table_name is undefined")
        if where_in.parent_fk_name and where_in.relation_fk_name:
            raise UsageError("ambiguous relation_fk_name and parent_fk_name")

        if where_in.parent_fk_name:
            column = self.id_field_name
            subquery = f"SELECT DISTINCT {where_in.parent_fk_name} FROM {where_in.parent_table_name}"
        elif where_in.relation_fk_name:
            if not where_in.parent_id_field_name:
                raise UsageError("parent_id_field_name is undefined")
            column = where_in.relation_fk_name
            subquery = f"SELECT {where_in.parent_id_field_name} FROM {where_in.parent_table_name}"
        else:
            raise UsageError("either parent_fk_name or relation_fk_name should be provided")

        parent_predicates = []
        if where_in.parent_ids is not None:
            if not where_in.parent_id_field_name:
                raise UsageError("parent_id_field_name is undefined")
            parent_predicates.append(ids_predicate(where_in.parent_id_field_name, where_in.parent_ids))
        if where_in.parent_where:
            parent_predicates.extend(where_predicates(where_in.parent_where, where_in.parent_schema))
        if parent_predicates:
            subquery += " WHERE " + " AND ".join(parent_predicates)

        return f"{column} IN ({subquery})"

    def select_row_exists(self, id: Any) -> str:
        """The engine raises nothing for a missing row; this query lets callers check."""
        return f"SELECT {self.id_field_clause} FROM {self.get_table_name()} WHERE {self.id_field_name}={render_id(id)}"

    def select_many(
        self,
        fields_only: str | list[str] | None = None,
        where: Mapping[str, Any] | None = None,
        where_in: WhereIn | None = None,
        order_by: str | list[str] | None = None,
        ids: list[Any] | None = None,
        id: Any = None,
    ) -> str:
        """SELECT statement for many rows.

        Examples:
            ()                                      -> SELECT <all fields> FROM <table>
            (where={'hide': False, 'name': 'Vasya'}) -> ... WHERE hide=false AND name='Vasya'
            (order_by=['name', 'rights DESC'])       -> ... ORDER BY name, rights DESC
            (ids=[1, 2])                             -> ... WHERE <id> IN (1, 2)
            (where_in=WhereIn(...))                  -> ... WHERE <column> IN (SELECT ...)

        Raises:
            UsageError: If ``id`` is passed (that is select_one's job)
        """
        if id is not None:
            raise UsageError("it is wrong to pass the `id` option to select_many")

        query = f"SELECT {self.generate_select_fields_part(fields_only)} FROM {self.get_table_name()}"

        predicates = []
        if ids is not None:
            predicates.append(ids_predicate(self.id_field_name, ids))
        if where:
            predicates.extend(where_predicates(where, self.schema))
        if where_in is not None:
            predicates.append(self._where_in_predicate(where_in))

        if predicates:
            query += f" WHERE {' AND '.join(predicates)}"

        if order_by:
            query += f" ORDER BY {', '.join(_as_list(order_by))}"

        logger.debug(f"select_many:\n    {query}")
        return query

    def select_one(
        self,
        id: Any = None,
        data: Mapping[str, Any] | None = None,
        where: Mapping[str, Any] | None = None,
        fields_only: str | list[str] | None = None,
    ) -> str:
        """SELECT statement for one row, by ``id`` or by the values in ``data``.

        ``where`` adds checks done by the engine (e.g. passwords) and is only
        allowed together with ``id``.
        """
        if id is None and not data:
            raise UsageError("either `id` or `data` option should be provided")
        if id is not None and data:
            raise UsageError("both `id` and `data` options are provided")
        if data and where:
            raise UsageError("`where` can be used only with `id` option")

        query = f"SELECT {self.generate_select_fields_part(fields_only)} FROM {self.get_table_name()}"

        if id is not None:
            query += f" WHERE {self.id_field_name}={render_id(id)}"
            if where:
                query += f" AND {' AND '.join(where_predicates(where, self.schema))}"
        else:
            lines = self.generate_field_equals_data_lines(data)
            if not lines:
                raise UsageError("`data` has no fields declared in the schema")
            query += f" WHERE {' AND '.join(lines)}"

        logger.debug(f"select_one:\n    {query}")
        return query

    def _fields_for_insert(
        self, data: Mapping[str, Any], schema_mixin: Mapping[str, str | None] | None
    ) -> tuple[list[str], list[str]]:
        names: list[str] = []
        values: list[str] = []

        for name, field_type in self.columns.items():
            if name in data:
                names.append(name)
                values.append(quote_value_if_string(field_type, data[name]))

        for name, field_type in (schema_mixin or {}).items():
            if name in data:
                names.append(name)
                values.append(quote_value_if_string(field_type, data[name]))

        for rel in self.belongs_to_descriptors:
            if rel.name in data:
                names.append(rel.fk_field)
                values.append(render_id(data[rel.name]))

        return names, values

    def insert(self, data: Mapping[str, Any], schema_mixin: Mapping[str, str | None] | None = None) -> str:
        """INSERT statement for the declared fields present in ``data``.

        ``schema_mixin`` declares extra private fields (name -> type) written
        for this insert only.
        """
        names, values = self._fields_for_insert(data, schema_mixin)
        if not names:
            raise UsageError("no declared fields to insert")

        query = f"INSERT INTO {self.get_table_name()} ({', '.join(names)}) VALUES ({', '.join(values)})"

        logger.debug(f"insert:\n    {query}")
        return query

    def update(self, id: Any, data: Mapping[str, Any]) -> str:
        lines = self.generate_field_equals_data_lines(data)
        if not lines:
            raise UsageError("no declared fields to update")

        query = f"UPDATE {self.get_table_name()} SET {', '.join(lines)} WHERE {self.id_field_name}={render_id(id)}"

        logger.debug(f"update:\n    {query}")
        return query

    def delete(self, ids: list[Any]) -> str:
        if not ids:
            raise UsageError("no ids to delete")

        query = f"DELETE FROM {self.get_table_name()} WHERE {ids_predicate(self.id_field_name, ids)}"

        logger.debug(f"delete:\n    {query}")
        return query


def _as_list(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [value]
    return list(value)
