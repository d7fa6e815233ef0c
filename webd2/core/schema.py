"""Schema descriptors for entity types."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from webd2.core.relationship import BelongsTo, HasMany
from webd2.errors import SchemaError

# Keys of a raw schema object that describe the table rather than a field
META_KEYS = ("tableName", "id")


class Column(BaseModel):
    """A plain stored column.

    ``type`` is one of ``string``, ``boolean``, ``integer``. Any other value
    (or None) marks an untyped column whose values pass through unchanged.
    """

    kind: Literal["column"] = "column"
    name: str = Field(..., description="Column name")
    type: str | None = Field(None, description="Primitive type tag")


FieldDescriptor = Annotated[Column | BelongsTo | HasMany, Field(discriminator="kind")]


class EntitySchema(BaseModel):
    """Schema of one entity type: table, primary key, columns and links.

    Every field plays exactly one role: plain column, belongs-to link or
    has-many link. Fields keep their declaration order, which is also the
    order of columns in generated SQL.
    """

    table_name: str | None = Field(None, description="Storage table name")
    id_field: str = Field(default="id", description="Primary key column, exposed as `id`")
    fields: dict[str, FieldDescriptor] = Field(default_factory=dict, description="Field descriptors by name")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "EntitySchema":
        """Parse a raw schema object.

        Example:
            {
              "tableName": "sPersonal",
              "id": "PersID",
              "name": "string",
              "hide": "boolean",
              "userGroup": {"belongsTo": "userGroup", "fkField": "GrpID"},
              "posts": {"hasMany": "post", "fkField": "UserID"}
            }
        """
        if raw is None:
            raise SchemaError("schema is not provided")
        if not isinstance(raw, dict):
            raise SchemaError("schema attribute should be an object")

        fields: dict[str, Any] = {}
        for name, descriptor in raw.items():
            if name in META_KEYS:
                continue
            fields[name] = _parse_field(name, descriptor)

        return cls(table_name=raw.get("tableName"), id_field=raw.get("id") or "id", fields=fields)

    @property
    def columns(self) -> dict[str, Column]:
        return {name: f for name, f in self.fields.items() if isinstance(f, Column)}

    @property
    def columns_names(self) -> list[str]:
        return list(self.columns)

    @property
    def column_types(self) -> dict[str, str | None]:
        """Column name -> type tag, the map the type caster works from."""
        return {name: column.type for name, column in self.columns.items()}

    @property
    def belongs_to(self) -> list[BelongsTo]:
        return [f for f in self.fields.values() if isinstance(f, BelongsTo)]

    @property
    def has_many(self) -> list[HasMany]:
        return [f for f in self.fields.values() if isinstance(f, HasMany)]

    @property
    def links(self) -> dict[str, BelongsTo | HasMany]:
        return {name: f for name, f in self.fields.items() if not isinstance(f, Column)}

    def get_link(self, name: str) -> BelongsTo | HasMany | None:
        return self.links.get(name)


def _parse_field(name: str, descriptor: Any) -> Column | BelongsTo | HasMany:
    if descriptor is None or isinstance(descriptor, str):
        return Column(name=name, type=descriptor)

    if not isinstance(descriptor, dict):
        raise SchemaError(f"The definition of '{name}' must be a type name or an object.")

    belongs_to = descriptor.get("belongsTo")
    has_many = descriptor.get("hasMany")

    if belongs_to and has_many:
        raise SchemaError(f"Cannot define both 'belongsTo' and 'hasMany' on '{name}'.")

    if belongs_to:
        return BelongsTo(
            name=name,
            target=belongs_to,
            fk_field=descriptor.get("fkField"),
            fk_as=descriptor.get("fkAs"),
            inverse=descriptor.get("inverse"),
        )

    if has_many:
        if not descriptor.get("fkField"):
            raise SchemaError(f"'{name}' hasMany link must declare 'fkField'.")
        return HasMany(
            name=name,
            target=has_many,
            fk_field=descriptor["fkField"],
            inverse=descriptor.get("inverse"),
        )

    raise SchemaError(f"The definition of '{name}' must contain either 'belongsTo' or 'hasMany'.")
