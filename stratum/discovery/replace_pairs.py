"""
The placeholder replacement table.

Two sources, keys always upper-cased:

  Constants file (optional)
      Bash-style ``NAME=value`` lines::

          # status limits
          ABC_MAX_STATUS=100
          ABC_LABEL='draft'

      Blank lines and ``#`` comments are skipped, one layer of matching
      outer quotes is stripped, and ``NAME`` becomes ``@NAME@``.

  Column types
      ``@TABLE.COLUMN%TYPE@`` for every column of every table of the
      current schema, mapped to the column's full type followed by
      `` character set <cs>`` for textual columns.

Constants win over column types on key collision.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stratum.configs.exceptions import MetadataError
from stratum.discovery.base import AbstractDataLayer

logger = logging.getLogger(__name__)

_COLUMN_TYPES_SQL = """
select table_name         as table_name
,      column_name        as column_name
,      column_type        as column_type
,      character_set_name as character_set_name
from   information_schema.COLUMNS
where  table_schema = database()
order by table_name
,        ordinal_position
"""


def strip_quotes(value: str) -> str:
    """
    Strip one matching pair of outer quotes.

    'value'  -> value
    "value"  -> value
    'value"  -> 'value"  (mismatched, left alone)
    """
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def read_constants(path: Path | str) -> dict[str, str]:
    """
    Parse a constants file into placeholder pairs.

    Returns:
        ``{"@NAME@": value}`` with upper-cased keys.

    Raises:
        MetadataError: If the file can't be read.
    """
    path = Path(path)
    pairs: dict[str, str] = {}
    try:
        with open(path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    logger.warning("Skipping line %d of %s: not an assignment", lineno, path)
                    continue

                name, _, value = line.partition("=")
                pairs[f"@{name.strip().upper()}@"] = strip_quotes(value.strip())
    except OSError as e:
        raise MetadataError(f"Cannot read constants file {path}: {e}") from e

    return pairs


def fetch_column_types(data_layer: AbstractDataLayer) -> dict[str, str]:
    """Return ``{"@TABLE.COLUMN%TYPE@": column type}`` for the current schema."""
    pairs = {}
    for row in data_layer.execute_rows(_COLUMN_TYPES_SQL):
        key = f"@{row['table_name']}.{row['column_name']}%type@".upper()
        value = str(row["column_type"])
        if row.get("character_set_name"):
            value += f" character set {row['character_set_name']}"
        pairs[key] = value
    return pairs


def build_replace_pairs(
    data_layer: AbstractDataLayer | None,
    constants_path: Path | str | None = None,
) -> dict[str, str]:
    """
    Build the full replacement table.

    Args:
        data_layer:     Open data layer, or ``None`` to skip column types.
        constants_path: Optional constants file.
    """
    pairs: dict[str, str] = {}
    if data_layer is not None:
        pairs.update(fetch_column_types(data_layer))
    if constants_path is not None:
        pairs.update(read_constants(constants_path))

    logger.debug("Replace table holds %d placeholder(s)", len(pairs))
    return pairs
