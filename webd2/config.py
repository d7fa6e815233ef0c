"""Configuration file format for webd2."""

import json
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

CONFIG_FILE_NAMES = ("webd2.yaml", "webd2.yml", "webd2.json")


class DuckDBConnection(BaseModel):
    """DuckDB connection configuration."""

    type: Literal["duckdb"] = "duckdb"
    path: str = Field(..., description="Path to DuckDB database file or :memory:")


class Webd2Config(BaseModel):
    """webd2 configuration file format.

    Can be saved as webd2.yaml or webd2.json.

    Example YAML:
        schema_file: ./entities.yaml
        connection:
          type: duckdb
          path: data/staff.db
        log_level: INFO

    Without ``schema_file`` the bundled entities (user, userGroup,
    userAccount) are used.
    """

    schema_file: str | None = Field(default=None, description="YAML/JSON file with entity definitions")
    connection: DuckDBConnection | None = Field(default=None, description="Database connection configuration")
    log_level: str = Field(default="INFO", description="Logging level name")

    def resolve_paths(self, base_dir: Path | None = None) -> "Webd2Config":
        """Resolve relative paths to absolute paths.

        Args:
            base_dir: Base directory for resolving relative paths (defaults to cwd)

        Returns:
            New config with resolved paths
        """
        base = base_dir or Path.cwd()

        schema_file = self.schema_file
        if schema_file and not Path(schema_file).is_absolute():
            schema_file = str((base / schema_file).resolve())

        connection = self.connection
        if connection and connection.path != ":memory:":
            db_p = Path(connection.path)
            if not db_p.is_absolute():
                db_p = (base / db_p).resolve()
            connection = DuckDBConnection(type="duckdb", path=str(db_p))

        return Webd2Config(schema_file=schema_file, connection=connection, log_level=self.log_level)


def load_config(config_path: Path) -> Webd2Config:
    """Load configuration from YAML or JSON file.

    Args:
        config_path: Path to config file (webd2.yaml or webd2.json)

    Returns:
        Loaded and validated configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file format is invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    if suffix in {".yaml", ".yml"}:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    elif suffix == ".json":
        with open(config_path) as f:
            data = json.load(f)
    else:
        raise ValueError(f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json")

    config = Webd2Config(**(data or {}))

    # Resolve relative paths relative to config file directory
    return config.resolve_paths(config_path.parent)


def find_config(start_dir: Path | None = None) -> Path | None:
    """Find config file by searching up the directory tree.

    Args:
        start_dir: Directory to start searching from (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    current = (start_dir or Path.cwd()).resolve()

    while True:
        for name in CONFIG_FILE_NAMES:
            config_path = current / name
            if config_path.exists():
                return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def build_connection_string(config: Webd2Config) -> str:
    """Connection URL for DuckDBTransport.from_url."""
    if not config.connection:
        return "duckdb:///:memory:"
    return f"duckdb:///{config.connection.path}"
