"""Loading entity definitions from YAML or JSON files."""

import json
import logging
from pathlib import Path

import yaml

from webd2.core.registry import EntityRegistry
from webd2.core.schema import EntitySchema
from webd2.errors import SchemaError

logger = logging.getLogger(__name__)


def load_schemas(path: str | Path) -> dict[str, EntitySchema]:
    """Parse entity schemas from a file.

    The file holds a top-level ``entities`` mapping of raw schema objects:

        entities:
          userGroup:
            tableName: sPepTree
            id: GrpID
            name: string
            users: {hasMany: user, fkField: GrpID}
          user:
            tableName: sPersonal
            id: PersID
            name: string
            userGroup: {belongsTo: userGroup, fkField: GrpID}

    Raises:
        FileNotFoundError: If the file does not exist
        SchemaError: If the file has no ``entities`` mapping or a schema is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    suffix = path.suffix.lower()
    with open(path) as f:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise SchemaError(f"Unsupported schema file format: {suffix}. Use .yaml, .yml, or .json")

    entities = (data or {}).get("entities") if isinstance(data, dict) else None
    if not isinstance(entities, dict) or not entities:
        raise SchemaError(f"{path}: top-level 'entities' mapping is missing or empty")

    schemas = {}
    for name, raw in entities.items():
        try:
            schemas[name] = EntitySchema.from_dict(raw)
        except SchemaError as e:
            raise SchemaError(f"Entity '{name}': {e}") from e

    logger.debug(f"loaded {len(schemas)} entities from {path}")
    return schemas


def register_from_file(registry: EntityRegistry, path: str | Path) -> EntityRegistry:
    """Register a plain Entity for every definition in the file and validate their links."""
    for name, schema in load_schemas(path).items():
        registry.register(name, schema=schema)
    registry.validate()
    return registry
