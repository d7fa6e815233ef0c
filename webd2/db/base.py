"""Base transport interface."""

import re
from abc import ABC, abstractmethod
from typing import Any

# Pattern for valid SQL identifiers: starts with letter or underscore,
# followed by letters, digits, or underscores. Also allows dots for
# qualified names (schema.table).
_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)*$")


def validate_identifier(value: str, name: str = "identifier") -> str:
    """Validate that a value is a safe SQL identifier.

    Allows: letters, digits, underscores, and dots (for qualified names).
    Must start with a letter or underscore.

    Args:
        value: The identifier value to validate
        name: Human-readable name for error messages (e.g., "table name")

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        ValueError: If the identifier contains invalid characters
    """
    if not value:
        raise ValueError(f"Invalid {name}: cannot be empty")

    if not _IDENTIFIER_PATTERN.match(value):
        raise ValueError(
            f"Invalid {name}: '{value}'. "
            f"Identifiers must start with a letter or underscore and contain only "
            f"letters, digits, underscores, and dots."
        )

    return value


class BaseTransport(ABC):
    """Abstract base class for transports.

    A transport owns one connection to the SQL engine at a time. Rows come
    back as dicts keyed by column alias, holding raw textual or typed values
    as the engine returns them.
    """

    @abstractmethod
    def open(self) -> None:
        """Open a connection.

        Raises:
            UsageError: If a connection is open already
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Close the current connection (no-op when none is open)."""
        raise NotImplementedError

    @property
    @abstractmethod
    def is_open(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def execute(self, sql: str) -> list[dict[str, Any]]:
        """Execute SQL on the open connection.

        Args:
            sql: SQL statement

        Returns:
            Rows for queries, an empty list for other statements
        """
        raise NotImplementedError

    @abstractmethod
    def begin(self) -> None:
        """Begin a transaction."""
        raise NotImplementedError

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction."""
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        """Roll back the current transaction."""
        raise NotImplementedError

    @property
    @abstractmethod
    def dialect(self) -> str:
        """SQLGlot dialect name of the engine."""
        raise NotImplementedError
