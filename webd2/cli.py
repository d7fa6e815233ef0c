"""CLI for webd2 entity definitions and requests."""

import json
import logging
from pathlib import Path

import typer

from webd2 import __version__
from webd2.config import Webd2Config, build_connection_string, find_config, load_config
from webd2.core.registry import EntityRegistry
from webd2.datamapper.mapper import DataMapper
from webd2.db.database import Database
from webd2.db.duckdb import DuckDBTransport
from webd2.errors import Webd2Error
from webd2.loaders import load_schemas, register_from_file
from webd2.models import register_models
from webd2.sql.builder import ID_AND_RELATIONS, ID_ONLY, SqlBuilder
from webd2.validation import format_errors, validate_entity_schema, validate_schema_links

logger = logging.getLogger(__name__)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"webd2 {__version__}")
        raise typer.Exit()


app = typer.Typer(
    help="webd2: entity schemas, SQL generation and data-mapper requests",
    no_args_is_help=True,
)

# Global state for config (set in callback, used in commands)
_loaded_config: Webd2Config | None = None


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", callback=version_callback, is_eager=True, help="Show version"),
    config: Path = typer.Option(None, "--config", "-c", help="Path to config file (webd2.yaml)"),
    verbose: bool = typer.Option(False, "--verbose", help="Log generated SQL and every gateway call"),
):
    """webd2 CLI.

    You can use a config file (webd2.yaml or webd2.json) to set the schema file
    and the database connection.
    """
    global _loaded_config

    config_path = config or find_config()

    _loaded_config = None
    if config_path:
        try:
            _loaded_config = load_config(config_path)
            typer.echo(f"Loaded config from: {config_path}", err=True)
        except (OSError, ValueError) as e:
            typer.echo(f"Warning: Failed to load config: {e}", err=True)

    level = logging.DEBUG if verbose else getattr(logging, (_loaded_config or Webd2Config()).log_level.upper(), None)
    logging.basicConfig(level=level if isinstance(level, int) else logging.INFO)


def _parse_fields(fields: str | None) -> str | list[str] | None:
    if not fields:
        return None
    if fields in (ID_ONLY, ID_AND_RELATIONS):
        return fields
    return [name.strip() for name in fields.split(",") if name.strip()]


def _parse_where(items: list[str] | None) -> dict[str, str]:
    where = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got '{item}'", param_hint="--where")
        where[key.strip()] = value
    return where


@app.command()
def validate(
    schema_file: Path = typer.Argument(..., help="YAML/JSON file with entity definitions"),
):
    """
    Validate entity definitions and the links between them.

    Examples:
      webd2 validate entities.yaml
    """
    try:
        schemas = load_schemas(schema_file)
    except (OSError, Webd2Error) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    errors = []
    for name, schema in schemas.items():
        errors.extend(validate_entity_schema(name, schema))
    errors.extend(validate_schema_links(schemas))

    if errors:
        typer.echo(format_errors("Entities", errors), err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ {len(schemas)} entities are valid: {', '.join(schemas)}")


@app.command()
def sql(
    schema_file: Path = typer.Argument(..., help="YAML/JSON file with entity definitions"),
    entity: str = typer.Argument(..., help="Entity name"),
    fields: str = typer.Option(None, "--fields", "-f", help="Comma separated fields, or 'id' / 'idAndRelations'"),
    where: list[str] = typer.Option(None, "--where", "-w", help="Equality filter key=value (repeatable)"),
    order_by: str = typer.Option(None, "--order-by", "-o", help="ORDER BY items, e.g. 'name DESC'"),
):
    """
    Print the select-many SQL for an entity.

    Examples:
      webd2 sql entities.yaml user
      webd2 sql entities.yaml user --fields name,userGroup --where hide=false --order-by name
    """
    where_map = _parse_where(where)

    try:
        schemas = load_schemas(schema_file)
        if entity not in schemas:
            typer.echo(f"Error: Entity {entity} not found", err=True)
            raise typer.Exit(1)

        query = SqlBuilder(schemas[entity]).select_many(
            fields_only=_parse_fields(fields),
            where=where_map or None,
            order_by=order_by,
        )
    except (OSError, Webd2Error) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(query)


@app.command()
def find(
    entity: str = typer.Argument(..., help="Entity name"),
    ids: list[str] = typer.Option(None, "--id", help="Primary key to fetch (repeatable)"),
    include: list[str] = typer.Option(None, "--include", "-i", help="Link to include (repeatable)"),
    schema_file: Path = typer.Option(None, "--schema", "-s", help="Entity definitions (default: config or bundled)"),
):
    """
    Run a find request against the configured database and print the JSON response.

    Examples:
      webd2 find user
      webd2 find userGroup --id 1 --id 2 --include users
      webd2 --config webd2.yaml find user --include userGroup
    """
    config = _loaded_config or Webd2Config()
    transport = DuckDBTransport.from_url(build_connection_string(config))

    try:
        registry = EntityRegistry(Database(transport))
        schema_path = schema_file or config.schema_file
        if schema_path:
            register_from_file(registry, schema_path)
        else:
            register_models(registry)

        response = DataMapper(registry).request(
            type=entity,
            method="find",
            ids=list(ids) if ids else None,
            include=[[link] for link in include or []],
        )
    except (OSError, Webd2Error) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        transport.dispose()

    typer.echo(json.dumps(response.to_dict(), indent=2, default=str))


if __name__ == "__main__":
    app()
