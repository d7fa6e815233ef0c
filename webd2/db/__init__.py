"""Transport abstraction layer."""

from webd2.db.base import BaseTransport
from webd2.db.database import Database

__all__ = ["BaseTransport", "Database"]


def __getattr__(name):
    """Lazy import transports to avoid importing drivers on package import."""
    if name == "DuckDBTransport":
        from webd2.db.duckdb import DuckDBTransport

        return DuckDBTransport
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
