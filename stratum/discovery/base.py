"""
Abstract base class for the database access layer.

Every concrete data layer (MySQL, test doubles) must implement this
interface.  The compile pipeline and the batch loader work exclusively
against ``AbstractDataLayer`` so they never touch a driver directly and
tests can substitute a double that records statements and returns
scripted catalog rows.

Usage:
    with MySqlDataLayer(host=..., user=..., password=..., database=...) as dl:
        dl.execute_none("set sql_mode = 'STRICT_ALL_TABLES'")
        rows = dl.execute_rows("select routine_name from information_schema.ROUTINES")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class AbstractDataLayer(ABC):
    """
    Interface for all database access layers.

    Subclasses must implement ``open``, ``execute_none``, ``execute_rows``,
    ``execute_singleton0``, ``escape_string`` and ``close``.  Context manager
    support (``__enter__`` / ``__exit__``) is provided by this base class and
    delegates to ``open`` / ``close``.

    All methods raise ``DataLayerError`` on failure.
    """

    @abstractmethod
    def open(self) -> None:
        """Open the connection.  Must be called before any statement is executed."""

    @abstractmethod
    def execute_none(self, sql: str) -> None:
        """Execute a statement that returns no rows (any rows produced are discarded)."""

    @abstractmethod
    def execute_rows(self, sql: str) -> list[dict[str, Any]]:
        """Execute a query and return all rows as dicts keyed by column label."""

    @abstractmethod
    def execute_singleton0(self, sql: str) -> Any:
        """
        Execute a query that selects zero or one row.

        Returns the value of the first column of the row, or ``None`` when no
        row is selected.
        """

    @abstractmethod
    def escape_string(self, value: str) -> str:
        """Escape special characters of ``value`` for use inside a SQL string literal."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""

    def quote_string(self, value: str | None) -> str:
        """
        Return ``value`` as a SQL string literal.

        ``None`` and the empty string become ``NULL``.
        """
        if value is None or value == "":
            return "NULL"
        return f"'{self.escape_string(value)}'"

    # ── context manager ──────────────────────────────────────────────────

    def __enter__(self) -> "AbstractDataLayer":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
        return None
