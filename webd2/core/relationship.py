"""Link descriptors for relations between entity types."""

from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from webd2.core.naming import camel_case, foreign_key
from webd2.errors import SchemaError

if TYPE_CHECKING:
    from webd2.core.schema import EntitySchema


class BelongsTo(BaseModel):
    """A field holding a single reference to a row of another entity type.

    The foreign key lives in this entity's table (``fk_field``) and is selected
    under the alias ``fk_as``.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["belongs_to"] = "belongs_to"
    name: str = Field(..., description="Field name in this entity")
    target: str = Field(..., description="Name of the related entity type")
    fk_field: str = Field(..., description="Foreign key column (defaults to camelCase of target)")
    fk_as: str = Field(..., description="Alias the foreign key is selected under (defaults to <target>Id)")
    inverse: str | None = Field(None, description="Has-many field on the target pointing back here")

    @model_validator(mode="before")
    @classmethod
    def apply_naming_defaults(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("target"):
            data = dict(data)
            if not data.get("fk_field"):
                data["fk_field"] = camel_case(data["target"])
            if not data.get("fk_as"):
                data["fk_as"] = foreign_key(data["target"])
        return data


class HasMany(BaseModel):
    """A field standing for the rows of another entity type that belong to this one.

    ``fk_field`` is the foreign key column in the target's table. It has no
    default because it cannot be inferred safely.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["has_many"] = "has_many"
    name: str = Field(..., description="Field name in this entity")
    target: str = Field(..., description="Name of the related entity type")
    fk_field: str = Field(..., description="Foreign key column in the target's table")
    inverse: str | None = Field(None, description="Belongs-to field on the target pointing back here")


Link = BelongsTo | HasMany


def get_belongs_to_descriptors(schema: "EntitySchema") -> list[BelongsTo]:
    """Belongs-to links of a schema, in declaration order."""
    if schema is None:
        raise TypeError("get_belongs_to_descriptors: schema is undefined")
    return schema.belongs_to


def get_has_many_descriptors(schema: "EntitySchema") -> list[HasMany]:
    """Has-many links of a schema, in declaration order."""
    if schema is None:
        raise TypeError("get_has_many_descriptors: schema is undefined")
    return schema.has_many


def find_model_field_name(model_name: str, relation_schema: "EntitySchema") -> str:
    """Name of the first belongs-to field of ``relation_schema`` that targets ``model_name``."""
    for descr in get_belongs_to_descriptors(relation_schema):
        if descr.target == model_name:
            return descr.name
    raise SchemaError(f"there is no belongsTo descriptor for '{model_name}'")


def find_inverse_field_name(model_name: str, link: HasMany, relation_schema: "EntitySchema") -> str:
    """Resolve the belongs-to field of the target that is the inverse of ``link``.

    An explicit ``inverse`` wins. Otherwise the single belongs-to field pointing
    back to ``model_name`` is used; among several candidates the one declaring
    ``inverse=link.name`` is chosen.
    """
    if link.inverse:
        return link.inverse

    candidates = [descr for descr in get_belongs_to_descriptors(relation_schema) if descr.target == model_name]
    if len(candidates) == 1:
        return candidates[0].name

    tagged = [descr for descr in candidates if descr.inverse == link.name]
    if len(tagged) == 1:
        return tagged[0].name

    if not candidates:
        raise SchemaError(f"there is no belongsTo descriptor for '{model_name}'")
    raise SchemaError(f"'{link.name}' link of '{model_name}' has several ambiguous inverse links in '{link.target}'")
