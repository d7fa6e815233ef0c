"""Entity data-access gateway."""

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from webd2.core.casting import cast_types_row, cast_types_rows
from webd2.core.schema import EntitySchema
from webd2.errors import NotFoundError, UsageError
from webd2.sql.builder import SqlBuilder

if TYPE_CHECKING:
    from webd2.core.registry import EntityRegistry
    from webd2.db.database import Database

logger = logging.getLogger(__name__)


class Entity:
    """Per-entity gateway: builds SQL, runs it through the database, casts rows.

    Subclasses set ``schema_object`` (the raw schema) and override the
    ``validate_before_*`` hooks to enforce business rules. A hook vetoes a
    write by raising; nothing is written in that case.

    Example:
        class Post(Entity):
            schema_object = {
                "tableName": "posts",
                "title": "string",
                "author": {"belongsTo": "user", "fkField": "UserID"},
            }
    """

    schema_object: dict[str, Any] | None = None

    def __init__(
        self,
        db: "Database",
        name: str,
        schema: EntitySchema | Mapping[str, Any],
        registry: "EntityRegistry | None" = None,
    ):
        if db is None:
            raise UsageError("database is undefined")
        if not name:
            raise UsageError("name is undefined")
        if schema is None:
            raise UsageError("schema is not provided")

        self.db = db
        self.name = name
        self.registry = registry
        self.schema = schema if isinstance(schema, EntitySchema) else EntitySchema.from_dict(dict(schema))

        self.sql_builder = SqlBuilder(self.schema)

        # options for the JSON-API serializer
        self.attributes_serialize = list(self.schema.fields)
        self.as_relation_attributes_serialize = self.sql_builder.columns_names

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, table={self.schema.table_name!r})"

    def select_many(self, **options: Any) -> list[dict[str, Any]]:
        """Rows matching the query options, cast to schema types."""
        logger.debug(f"{self.name}:select_many")
        rows = self.db.exec(self.sql_builder.select_many(**options))
        return cast_types_rows(rows, self.schema)

    def select_one(self, **options: Any) -> dict[str, Any]:
        """One row by ``id`` or ``data``.

        Raises:
            NotFoundError: If no row matches
        """
        logger.debug(f"{self.name}:select_one({'<by data>' if options.get('data') else options.get('id')})")
        rows = self.db.exec(self.sql_builder.select_one(**options))
        if not rows:
            raise NotFoundError("db returned no data")
        return cast_types_row(rows[0], self.schema)

    def create(self, data: Mapping[str, Any], schema_mixin: Mapping[str, str | None] | None = None) -> dict[str, Any]:
        """Insert a row and return it as stored, with its generated id.

        Private ``schema_mixin`` fields are written but never returned.
        """
        logger.debug(f"{self.name}:create")

        logger.debug(f"{self.name}:validate_before_create()")
        self.validate_before_create(data, schema_mixin)

        with self.db.session():
            self.db.exec(self.sql_builder.insert(data, schema_mixin))
            rows = self.db.exec(self.sql_builder.select_one(data=data))

        if not rows:
            raise NotFoundError(f"something went wrong with INSERT {dict(data)!r}")
        return cast_types_row(rows[0], self.schema)

    def update(self, id: Any, new_data: Mapping[str, Any]) -> dict[str, Any]:
        """Update a row and return the fresh row.

        Raises:
            NotFoundError: If the row does not exist
        """
        if id is None:
            raise UsageError("no id has been provided")
        if new_data is None:
            raise UsageError("no data has been provided")
        logger.debug(f"{self.name}:update({id})")

        with self.db.session():
            rows = self.db.exec(self.sql_builder.select_one(id=id))
            if not rows:
                raise NotFoundError(f"row with id: {id} does not exist")
            prev_data = cast_types_row(rows[0], self.schema)

            logger.debug(f"{self.name}:validate_before_update()")
            self.validate_before_update(id, new_data, prev_data)

            self.db.exec(self.sql_builder.update(id, new_data))
            return self.select_one(id=id)

    def delete(self, ids: list[Any]) -> None:
        logger.debug(f"{self.name}:delete({ids})")
        self.db.exec(self.sql_builder.delete(ids))

    def validate_before_create(self, data: Mapping[str, Any], schema_mixin: Mapping[str, str | None] | None) -> None:
        """Hook run before INSERT. Raise to refuse the write."""
        return None

    def validate_before_update(self, id: Any, new_data: Mapping[str, Any], prev_data: dict[str, Any]) -> None:
        """Hook run before UPDATE with the previous row already cast. Raise to refuse the write."""
        return None
