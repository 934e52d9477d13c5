"""
Catalog type → wrapper type mapping.

Mapping rules:
  - tinyint, smallint, mediumint, int, bigint, year, bit → ``int``
  - decimal                                              → ``int`` if scale is 0, else ``float``
  - float, double                                        → ``float``
  - char/binary, temporal, enum/set, text/blob types     → ``str``
  - list_of_int (declared with ``-- param:``)            → ``str|list[int]``

Every other type raises ``UnsupportedTypeError``: a silently guessed type
would end up in generated wrapper code.
"""

from __future__ import annotations

from stratum.configs.exceptions import UnsupportedTypeError
from stratum.models.models import CatalogParameter, SemanticType

_TYPE_MAP: dict[str, SemanticType] = {
    "tinyint":    "int",
    "smallint":   "int",
    "mediumint":  "int",
    "int":        "int",
    "bigint":     "int",
    "year":       "int",
    "bit":        "int",

    "float":      "float",
    "double":     "float",

    "varbinary":  "str",
    "binary":     "str",
    "char":       "str",
    "varchar":    "str",
    "time":       "str",
    "timestamp":  "str",
    "date":       "str",
    "datetime":   "str",
    "enum":       "str",
    "set":        "str",
    "tinytext":   "str",
    "text":       "str",
    "mediumtext": "str",
    "longtext":   "str",
    "tinyblob":   "str",
    "blob":       "str",
    "mediumblob": "str",
    "longblob":   "str",

    "list_of_int": "str|list[int]",
}

SUPPORTED_TYPES: frozenset[str] = frozenset(_TYPE_MAP) | {"decimal"}


def semantic_type_for(
    data_type: str,
    numeric_scale: int | str | None = None,
    source_path: str | None = None,
) -> SemanticType:
    """
    Return the wrapper type for a catalog base type.

    Args:
        data_type:     Base catalog type, e.g. ``'varchar'``.
        numeric_scale: Scale of the type; only consulted for ``decimal``.
        source_path:   Source file, for the error message.

    Raises:
        UnsupportedTypeError: If ``data_type`` is not a supported type.
    """
    if data_type == "decimal":
        return "int" if str(numeric_scale) == "0" else "float"

    if data_type not in _TYPE_MAP:
        raise UnsupportedTypeError(
            f"Unsupported column type '{data_type}'. Valid types: {sorted(SUPPORTED_TYPES)}",
            source_path=source_path,
            data_type=data_type,
        )
    return _TYPE_MAP[data_type]


def semantic_type_of(parameter: CatalogParameter, source_path: str | None = None) -> SemanticType:
    """Wrapper type of a parameter, honouring its ``-- param:`` list type."""
    return semantic_type_for(parameter.effective_type, parameter.numeric_scale, source_path)
