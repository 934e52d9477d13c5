"""
Custom exceptions for the stored routine loader.

Hierarchy:
    StratumError
    ├── RoutineError                 Compilation of one routine must stop; the batch continues.
    │   ├── ParseError               The source file does not follow the routine file convention.
    │   │   ├── PlaceholderError     The source references placeholders with no value.
    │   │   ├── DesignationError     Missing or malformed ``-- type:`` comment.
    │   │   └── ParameterSyntaxError Malformed or duplicate ``-- param:`` comment.
    │   └── ReconciliationError      Annotations and the live catalog disagree.
    │       ├── ColumnCountError     Bulk insert columns don't match the table columns.
    │       └── UnsupportedTypeError Catalog type with no wrapper type.
    ├── DataLayerError               A statement or query failed.
    │   └── DataLayerConnectionError The connection is gone; the whole batch halts.
    └── MetadataError                The metadata store can't be read or written.
"""

from __future__ import annotations


class StratumError(Exception):
    """Base class for all loader errors."""


class RoutineError(StratumError):
    """
    Raised when a single stored routine can't be compiled.

    Args:
        message: Human-readable description of the failure.
        source_path: Path of the routine source file being compiled.
    """

    def __init__(self, message: str, source_path: str | None = None) -> None:
        super().__init__(message)
        self.source_path = source_path

    def __str__(self) -> str:
        base = super().__str__()
        if self.source_path:
            return f"{base} | source={self.source_path}"
        return base


class ParseError(RoutineError):
    """Raised when the routine source doesn't follow the file convention."""


class PlaceholderError(ParseError):
    """
    Raised when the source references placeholders that have no value.

    Args:
        message: Human-readable description.
        source_path: Path of the routine source file.
        placeholders: The offending placeholder tokens, in order of appearance.
    """

    def __init__(
        self,
        message: str,
        source_path: str | None = None,
        placeholders: list[str] | None = None,
    ) -> None:
        super().__init__(message, source_path)
        self.placeholders = list(placeholders or [])

    def __str__(self) -> str:
        base = super().__str__()
        if self.placeholders:
            return f"{base} | placeholders={', '.join(self.placeholders)}"
        return base


class DesignationError(ParseError):
    """Raised when the designation type comment is missing or malformed."""


class ParameterSyntaxError(ParseError):
    """
    Raised when a ``-- param:`` comment is malformed or declares a name twice.

    Args:
        message: Human-readable description.
        source_path: Path of the routine source file.
        parameter_name: The parameter involved, when known.
    """

    def __init__(
        self,
        message: str,
        source_path: str | None = None,
        parameter_name: str | None = None,
    ) -> None:
        super().__init__(message, source_path)
        self.parameter_name = parameter_name

    def __str__(self) -> str:
        base = super().__str__()
        if self.parameter_name:
            return f"{base} | parameter={self.parameter_name}"
        return base


class ReconciliationError(RoutineError):
    """Raised when the source annotations and the database catalog disagree."""


class ColumnCountError(ReconciliationError):
    """
    Raised when the number of bulk insert columns doesn't match the table.

    Args:
        message: Human-readable description.
        source_path: Path of the routine source file.
        expected: Number of columns declared in the designation.
        got: Number of columns found in the table.
    """

    def __init__(
        self,
        message: str,
        source_path: str | None = None,
        expected: int | None = None,
        got: int | None = None,
    ) -> None:
        super().__init__(message, source_path)
        self.expected = expected
        self.got = got

    def __str__(self) -> str:
        base = super().__str__()
        parts = []
        if self.expected is not None:
            parts.append(f"expected={self.expected}")
        if self.got is not None:
            parts.append(f"got={self.got}")
        if parts:
            return f"{base} | {' '.join(parts)}"
        return base


class UnsupportedTypeError(ReconciliationError):
    """
    Raised when a catalog data type has no wrapper type.

    Args:
        message: Human-readable description.
        source_path: Path of the routine source file.
        data_type: The catalog data type that couldn't be mapped.
    """

    def __init__(
        self,
        message: str,
        source_path: str | None = None,
        data_type: str | None = None,
    ) -> None:
        super().__init__(message, source_path)
        self.data_type = data_type

    def __str__(self) -> str:
        base = super().__str__()
        if self.data_type:
            return f"{base} | data_type={self.data_type}"
        return base


class DataLayerError(StratumError):
    """
    Raised when a statement or query fails.

    Args:
        message: Human-readable description.
        sql: The statement that failed, if available.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql

    def __str__(self) -> str:
        base = super().__str__()
        if self.sql:
            return f"{base} | sql={self.sql.strip()!r}"
        return base


class DataLayerConnectionError(DataLayerError):
    """Raised when the database connection is lost or can't be opened."""


class MetadataError(StratumError):
    """Raised when the metadata store can't be read or written."""
