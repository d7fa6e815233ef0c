"""Registry of entity gateways by name."""

import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from webd2.core.entity import Entity
from webd2.core.naming import camel_case
from webd2.core.schema import EntitySchema
from webd2.errors import SchemaError
from webd2.validation import format_errors, validate_entity_schema, validate_schema_links

if TYPE_CHECKING:
    from webd2.db.database import Database

logger = logging.getLogger(__name__)


class EntityRegistry:
    """Name -> entity gateway lookup shared by the relations engine and the data mapper.

    Usage:
        registry = EntityRegistry(db)
        registry.register("userAccount", UserAccount)
        registry.get_model("userAccount").select_many()
    """

    def __init__(self, db: "Database | None" = None):
        self.db = db
        self.entities: dict[str, Entity] = {}

    def register(
        self,
        name: str,
        entity_class: type[Entity] | None = None,
        schema: EntitySchema | Mapping[str, Any] | None = None,
        db: "Database | None" = None,
    ) -> Entity:
        """Create and register an entity gateway.

        Args:
            name: Entity name (normalized to camelCase)
            entity_class: Gateway class, ``Entity`` by default
            schema: Raw or parsed schema; defaults to ``entity_class.schema_object``
            db: Database for this gateway; defaults to the registry's

        Raises:
            SchemaError: If the name is taken, or schema or database is missing
        """
        name = camel_case(name)
        entity_class = entity_class or Entity

        if schema is None:
            schema = entity_class.schema_object
        if schema is None:
            raise SchemaError(f"you need to define `{entity_class.__name__}.schema_object`")

        if name in self.entities:
            raise SchemaError(f"{name} is already defined in the registry")

        db = db or self.db
        if db is None:
            raise SchemaError(f"no database to register '{name}' with")

        entity = entity_class(db=db, name=name, schema=schema, registry=self)

        errors = validate_entity_schema(name, entity.schema)
        if errors:
            raise SchemaError(format_errors(f"Entity '{name}'", errors))

        self.entities[name] = entity
        logger.debug(f"registered {entity!r}")
        return entity

    def model(self, name: str) -> Entity | None:
        return self.entities.get(camel_case(name))

    def get_model(self, name: str) -> Entity:
        """Get entity gateway by name.

        Raises:
            KeyError: If the entity is not registered
        """
        entity = self.model(name)
        if entity is None:
            raise KeyError(f"Entity {name} not found")
        return entity

    @property
    def names(self) -> list[str]:
        return list(self.entities)

    @property
    def schemas(self) -> dict[str, EntitySchema]:
        return {name: entity.schema for name, entity in self.entities.items()}

    def validate(self) -> None:
        """Validate links between all registered entities.

        Raises:
            SchemaError: With every problem found
        """
        errors = validate_schema_links(self.schemas)
        if errors:
            raise SchemaError(format_errors("Schema links", errors))

    def clear(self) -> None:
        self.entities.clear()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and camel_case(name) in self.entities

    def __iter__(self) -> Iterator[str]:
        return iter(self.entities)

    def __len__(self) -> int:
        return len(self.entities)
