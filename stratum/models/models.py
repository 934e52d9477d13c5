"""
Core data models for the routine loader.

RoutineSource        — one routine source file as read from disk.
Designation          — the calling convention declared by ``-- type:``.
ExtendedParameter    — list codec of a parameter declared by ``-- param:``.
CatalogParameter     — a routine parameter as reported by the database catalog.
TableColumns         — columns of the target table of a bulk insert routine.
WrapperParameter     — a parameter as the wrapper generator sees it.
RoutineDoc           — the documentation payload handed to the wrapper generator.
BuildMetadata        — everything persisted about a routine between builds.

All models are frozen: every stage of the compile pipeline takes the values
produced by the previous stage and returns new ones.

Persisted layout
----------------
``BuildMetadata.to_dict()`` produces the JSON record stored per routine::

    {
      "routine_name": "abc_user_get_rows",
      "routine_type": "procedure",
      "designation": "rows_with_key",
      "table_name": null,
      "columns": ["usr_id"],
      "fields": [],
      "column_types": [],
      "parameters": [{"name": "p_usr_id", "data_type": "int", ...}],
      "timestamp": 1700000000,
      "replace": {"@ABC_MAX@": "100"},
      "doc": {"short_description": "...", "long_description": "...", "parameters": [...]},
      "spec_params": {}
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

from stratum.utils.identifiers import routine_name_from_path


# Types of the generated wrapper a catalog type can map to.
SemanticType = Literal["int", "float", "str", "str|list[int]"]

# Designation types that carry a list of key or index columns.
COLUMN_DESIGNATIONS: frozenset[str] = frozenset({"rows_with_key", "rows_with_index"})

BULK_INSERT = "bulk_insert"


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """SQL mode, character set and collation of the loading session."""

    sql_mode: str
    character_set: str
    collation: str


@dataclass(frozen=True, slots=True)
class RoutineCatalogEntry:
    """
    A routine as currently present in ``information_schema.ROUTINES``.

    Attributes:
        routine_name:         Name of the routine.
        routine_type:         ``'procedure'`` or ``'function'`` (lowercase).
        sql_mode:             SQL mode the routine was created under.
        character_set_client: Character set the routine was created under.
        collation_connection: Collation the routine was created under.
    """

    routine_name: str
    routine_type: str
    sql_mode: str
    character_set_client: str
    collation_connection: str


@dataclass(frozen=True, slots=True)
class RoutineSource:
    """
    Immutable view of one routine source file.

    Attributes:
        path:      Path of the source file.
        extension: File name suffix stripped to obtain the routine name.
        text:      Raw source text.
        lines:     ``text`` split on ``\\n``. Index ``i`` is source line ``i + 1``.
        mtime:     Modification time of the file in whole seconds.
    """

    path: Path
    extension: str
    text: str
    lines: tuple[str, ...]
    mtime: int

    @property
    def routine_name(self) -> str:
        """Routine name implied by the file name."""
        return routine_name_from_path(self.path, self.extension)


@dataclass(frozen=True, slots=True)
class Designation:
    """
    The designation type of a routine.

    Attributes:
        type:       Designation name, e.g. ``'none'``, ``'rows'``, ``'bulk_insert'``.
        table_name: Target table for ``bulk_insert``; ``None`` otherwise.
        columns:    Bulk insert columns, or key/index columns for
                    ``rows_with_key`` / ``rows_with_index``.
    """

    type: str
    table_name: str | None = None
    columns: tuple[str, ...] = ()

    @property
    def is_bulk_insert(self) -> bool:
        return self.type == BULK_INSERT


@dataclass(frozen=True, slots=True)
class ExtendedParameter:
    """
    A parameter whose value is a delimited list encoded as a single string.

    Attributes:
        name:      Parameter name; must match a catalog parameter.
        data_type: Abstract list type, e.g. ``'list_of_int'``.
        delimiter: Single character separating list items.
        enclosure: Single character enclosing list items.
        escape:    Single escape character.
    """

    name: str
    data_type: str
    delimiter: str = ","
    enclosure: str = '"'
    escape: str = "\\"

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "data_type": self.data_type,
            "delimiter": self.delimiter,
            "enclosure": self.enclosure,
            "escape": self.escape,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtendedParameter":
        return cls(
            name=data["name"],
            data_type=data["data_type"],
            delimiter=data.get("delimiter", ","),
            enclosure=data.get("enclosure", '"'),
            escape=data.get("escape", "\\"),
        )


@dataclass(frozen=True, slots=True)
class CatalogParameter:
    """
    A routine parameter as reported by ``information_schema.PARAMETERS``.

    Attributes:
        name:               Parameter name.
        data_type:          Base catalog type, e.g. ``'varchar'``.
        dtd_identifier:     Full catalog type, e.g. ``'varchar(80)'``.
        numeric_precision:  Precision of numeric types.
        numeric_scale:      Scale of numeric types.
        character_set_name: Character set of textual types.
        collation_name:     Collation of textual types.
        extended:           The ``-- param:`` declaration merged into this
                            parameter, if any.
    """

    name: str
    data_type: str
    dtd_identifier: str = ""
    numeric_precision: int | None = None
    numeric_scale: int | None = None
    character_set_name: str | None = None
    collation_name: str | None = None
    extended: ExtendedParameter | None = None

    @property
    def effective_type(self) -> str:
        """The list type of an extended parameter, else the catalog type."""
        if self.extended is not None:
            return self.extended.data_type
        return self.data_type

    @property
    def data_type_descriptor(self) -> str:
        """Full type with character set and collation clauses appended."""
        descriptor = self.dtd_identifier
        if self.character_set_name:
            descriptor += f" character set {self.character_set_name}"
        if self.collation_name:
            descriptor += f" collation {self.collation_name}"
        return descriptor

    def merged(self, extended: ExtendedParameter) -> "CatalogParameter":
        return replace(self, extended=extended)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "data_type": self.effective_type,
            "catalog_data_type": self.data_type,
            "dtd_identifier": self.dtd_identifier,
            "numeric_precision": self.numeric_precision,
            "numeric_scale": self.numeric_scale,
            "character_set_name": self.character_set_name,
            "collation_name": self.collation_name,
            "data_type_descriptor": self.data_type_descriptor,
        }
        if self.extended is not None:
            data["delimiter"] = self.extended.delimiter
            data["enclosure"] = self.extended.enclosure
            data["escape"] = self.extended.escape
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogParameter":
        extended = None
        if "delimiter" in data:
            extended = ExtendedParameter(
                name=data["name"],
                data_type=data["data_type"],
                delimiter=data["delimiter"],
                enclosure=data["enclosure"],
                escape=data["escape"],
            )
        return cls(
            name=data["name"],
            data_type=data.get("catalog_data_type", data["data_type"]),
            dtd_identifier=data.get("dtd_identifier", ""),
            numeric_precision=data.get("numeric_precision"),
            numeric_scale=data.get("numeric_scale"),
            character_set_name=data.get("character_set_name"),
            collation_name=data.get("collation_name"),
            extended=extended,
        )


@dataclass(frozen=True, slots=True)
class TableColumns:
    """Column names and base types of a bulk insert target table, in table order."""

    fields: tuple[str, ...] = ()
    column_types: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class WrapperParameter:
    """A routine parameter as documented for the wrapper generator."""

    name: str
    semantic_type: SemanticType
    data_type_descriptor: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "semantic_type": self.semantic_type,
            "data_type_descriptor": self.data_type_descriptor,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WrapperParameter":
        return cls(
            name=data["name"],
            semantic_type=data["semantic_type"],
            data_type_descriptor=data["data_type_descriptor"],
            description=data.get("description"),
        )


@dataclass(frozen=True, slots=True)
class RoutineDoc:
    """Short and long description plus documented parameters of a routine."""

    short_description: str = ""
    long_description: str = ""
    parameters: tuple[WrapperParameter, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "short_description": self.short_description,
            "long_description": self.long_description,
            "parameters": [p.to_dict() for p in self.parameters],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoutineDoc":
        return cls(
            short_description=data.get("short_description", ""),
            long_description=data.get("long_description", ""),
            parameters=tuple(WrapperParameter.from_dict(p) for p in data.get("parameters", [])),
        )


@dataclass(frozen=True, slots=True)
class BuildMetadata:
    """
    The persisted record of a routine, read before and written after a build.

    Attributes:
        routine_name: Name of the routine.
        routine_type: ``'procedure'`` or ``'function'``.
        designation:  Designation type with its table and columns.
        parameters:   Catalog parameters with extended parameters merged in.
        fields:       Bulk insert table column names (empty otherwise).
        column_types: Bulk insert table column base types (empty otherwise).
        timestamp:    Modification time of the source file at build time.
        replace:      Placeholders used by the source and their values, sorted by key.
        doc:          Documentation payload for the wrapper generator.
        spec_params:  Extended parameter declarations keyed by parameter name.
    """

    routine_name: str
    routine_type: str
    designation: Designation
    parameters: tuple[CatalogParameter, ...] = ()
    fields: tuple[str, ...] = ()
    column_types: tuple[str, ...] = ()
    timestamp: int = 0
    replace: dict[str, str] = field(default_factory=dict)
    doc: RoutineDoc = field(default_factory=RoutineDoc)
    spec_params: dict[str, ExtendedParameter] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "routine_name": self.routine_name,
            "routine_type": self.routine_type,
            "designation": self.designation.type,
            "table_name": self.designation.table_name,
            "columns": list(self.designation.columns),
            "fields": list(self.fields),
            "column_types": list(self.column_types),
            "parameters": [p.to_dict() for p in self.parameters],
            "timestamp": self.timestamp,
            "replace": dict(self.replace),
            "doc": self.doc.to_dict(),
            "spec_params": {name: p.to_dict() for name, p in self.spec_params.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildMetadata":
        """
        Rebuild a record written by ``to_dict``.

        Raises:
            KeyError: If a required key is missing.
        """
        designation = Designation(
            type=data["designation"],
            table_name=data.get("table_name"),
            columns=tuple(data.get("columns") or ()),
        )
        return cls(
            routine_name=data["routine_name"],
            routine_type=data.get("routine_type", "procedure"),
            designation=designation,
            parameters=tuple(CatalogParameter.from_dict(p) for p in data.get("parameters", [])),
            fields=tuple(data.get("fields") or ()),
            column_types=tuple(data.get("column_types") or ()),
            timestamp=int(data["timestamp"]),
            replace=dict(data.get("replace") or {}),
            doc=RoutineDoc.from_dict(data.get("doc") or {}),
            spec_params={
                name: ExtendedParameter.from_dict(p)
                for name, p in (data.get("spec_params") or {}).items()
            },
        )
