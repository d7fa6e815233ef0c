"""Validation passes for entity schemas and request transforms."""

from collections.abc import Mapping
from typing import Any

from webd2.core.relationship import BelongsTo, HasMany
from webd2.core.schema import EntitySchema
from webd2.db.base import validate_identifier

TRANSFORM_KEYS = ("input", "output")


def format_errors(what: str, errors: list[str]) -> str:
    """One message out of a list of validation errors."""
    return f"{what} validation failed:\n" + "\n".join(f"  - {e}" for e in errors)


def validate_entity_schema(name: str, schema: EntitySchema) -> list[str]:
    """Validate the identifiers an entity schema puts into SQL.

    Args:
        name: Entity name
        schema: Parsed schema

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    identifiers = [("table name", schema.table_name), ("id field", schema.id_field)]
    identifiers += [("column", column) for column in schema.columns_names]
    identifiers += [(f"'{link.name}' foreign key", link.fk_field) for link in schema.links.values()]

    for what, value in identifiers:
        if value is None:
            continue
        try:
            validate_identifier(value, what)
        except ValueError as e:
            errors.append(f"Entity '{name}': {e}")

    return errors


def validate_schema_links(schemas: Mapping[str, EntitySchema]) -> list[str]:
    """Check that every link points to a described entity and has-many links can find their inverse.

    Args:
        schemas: Entity name -> schema, for every registered entity

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    for model_name, schema in schemas.items():
        for link_name, link in schema.links.items():
            relation_schema = schemas.get(link.target)

            if relation_schema is None:
                errors.append(f"'{link_name}' link of the '{model_name}' points to undescribed '{link.target}'")
                continue

            if isinstance(link, HasMany):
                errors.extend(_validate_has_many(model_name, link, relation_schema))

    return errors


def _validate_has_many(model_name: str, link: HasMany, relation_schema: EntitySchema) -> list[str]:
    prefix = f"'{link.name}' array link of the '{model_name}'"

    if link.inverse:
        inverse_field = relation_schema.fields.get(link.inverse)

        if inverse_field is None:
            return [f"{prefix} has \"inverse\" pointing to undescribed field '{link.inverse}' of '{link.target}'"]

        if not isinstance(inverse_field, BelongsTo | HasMany):
            return [f"{prefix} has \"inverse\" pointing to not a link field '{link.inverse}' of '{link.target}'"]

        if inverse_field.target != model_name:
            return [
                f"{prefix} has \"inverse\" pointing to not an inverse link field '{link.inverse}'"
                f" of '{link.target}' which points to '{inverse_field.target}' instead of '{model_name}'"
            ]

        if isinstance(inverse_field, HasMany):
            return [f"wrong schema: {prefix} has inverse '{link.inverse}' link in '{link.target}' but it is an array"]

        return []

    # without own `inverse` try to find one
    inverse_links = [f for f in relation_schema.links.values() if f.target == model_name]

    if not inverse_links:
        return [f"{prefix} has no inverse belongsTo link in '{link.target}'"]

    if len(inverse_links) == 1 and isinstance(inverse_links[0], HasMany):
        return [f"wrong schema: {prefix} has inverse link in '{link.target}' but it is an array"]

    if len(inverse_links) > 1 and not any(f.inverse == link.name for f in relation_schema.links.values()):
        return [f"wrong schema: {prefix} has several ambiguous inverse links in '{link.target}'"]

    return []


def validate_transforms(transforms: Mapping[str, Any], type_names: list[str]) -> list[str]:
    """Validate per-type transforms.

    Each transform is a mapping with optional ``input`` and ``output`` callables.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    for type_name, transform in transforms.items():
        if type_name not in type_names:
            errors.append(f'Attempted to define transform on "{type_name}" type which does not exist.')
            continue

        if not isinstance(transform, Mapping):
            errors.append(f'Transform value for "{type_name}" type must be an object.')
            continue

        for key in transform:
            if key not in TRANSFORM_KEYS:
                errors.append(f'Transform for "{type_name}" type has unknown key "{key}".')
            elif transform[key] is not None and not callable(transform[key]):
                errors.append(f'Transform "{key}" for "{type_name}" type must be callable.')

    return errors
