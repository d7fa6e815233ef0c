"""webd2: schema-driven SQL generation and data mapping for JSON-API services."""

__version__ = "0.1.0"

from webd2.core.entity import Entity
from webd2.core.registry import EntityRegistry
from webd2.core.relations import Relations
from webd2.core.schema import EntitySchema
from webd2.datamapper.mapper import DataMapper
from webd2.db.database import Database
from webd2.sql.builder import SqlBuilder, WhereIn

__all__ = [
    "DataMapper",
    "Database",
    "DuckDBTransport",
    "Entity",
    "EntityRegistry",
    "EntitySchema",
    "Relations",
    "SqlBuilder",
    "WhereIn",
]


def __getattr__(name):  # Lazy import to avoid importing duckdb on package import
    if name == "DuckDBTransport":
        from webd2.db.duckdb import DuckDBTransport

        return DuckDBTransport
    raise AttributeError(name)
