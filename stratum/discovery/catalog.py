"""
Catalog reconciliation: read back what MySQL knows about a loaded routine.

After a routine has been created this module:
  - reads its parameters from ``information_schema.PARAMETERS`` in ordinal order;
  - merges the ``-- param:`` declarations into the matching parameters;
  - for ``bulk_insert`` routines, introspects the target table's columns,
    materializing it first by calling the routine when it is a temporary
    table, and checks the column count against the designation.

It also provides the batch-level catalog reads (routines of the schema,
column types for placeholders).

``information_schema`` columns are always aliased to lowercase labels so
rows look the same on every server version.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Iterator

from stratum.configs.exceptions import ColumnCountError, ReconciliationError
from stratum.discovery.base import AbstractDataLayer
from stratum.models.models import (
    CatalogParameter,
    Designation,
    ExtendedParameter,
    RoutineCatalogEntry,
    TableColumns,
)
from stratum.utils.identifiers import backtick

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
_ROUTINES_SQL = """
select routine_name         as routine_name
,      routine_type         as routine_type
,      sql_mode             as sql_mode
,      character_set_client as character_set_client
,      collation_connection as collation_connection
from   information_schema.ROUTINES
where  routine_schema = database()
order by routine_name
"""

_PARAMETERS_SQL = """
select t2.parameter_name     as parameter_name
,      t2.data_type          as data_type
,      t2.numeric_precision  as numeric_precision
,      t2.numeric_scale      as numeric_scale
,      t2.character_set_name as character_set_name
,      t2.collation_name     as collation_name
,      t2.dtd_identifier     as dtd_identifier
from            information_schema.ROUTINES   t1
left outer join information_schema.PARAMETERS t2  on  t2.specific_schema = t1.routine_schema and
                                                      t2.specific_name   = t1.routine_name and
                                                      t2.parameter_mode  is not null
where  t1.routine_schema = database()
and    t1.routine_name   = {routine_name}
order by t2.ordinal_position
"""

_TABLE_EXISTS_SQL = """
select 1
from   information_schema.TABLES
where  table_schema = database()
and    table_name   = {table_name}
"""

_TYPE_WORD_RE = re.compile(r"\w+")


# ---------------------------------------------------------------------------
# Routines of the schema
# ---------------------------------------------------------------------------

def fetch_routine_catalog(data_layer: AbstractDataLayer) -> dict[str, RoutineCatalogEntry]:
    """Return every routine of the current schema keyed by routine name."""
    entries = {}
    for row in data_layer.execute_rows(_ROUTINES_SQL):
        entry = RoutineCatalogEntry(
            routine_name=row["routine_name"],
            routine_type=str(row["routine_type"]).lower(),
            sql_mode=row["sql_mode"],
            character_set_client=row["character_set_client"],
            collation_connection=row["collation_connection"],
        )
        entries[entry.routine_name] = entry
    return entries


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

def fetch_parameters(data_layer: AbstractDataLayer, routine_name: str) -> tuple[CatalogParameter, ...]:
    """
    Return the parameters of a routine in ordinal order.

    A function's return value is not a parameter.  A routine without
    parameters yields an empty tuple.
    """
    sql = _PARAMETERS_SQL.format(routine_name=data_layer.quote_string(routine_name))
    params = []
    for row in data_layer.execute_rows(sql):
        if not row.get("parameter_name"):
            continue
        params.append(CatalogParameter(
            name=row["parameter_name"],
            data_type=row["data_type"],
            dtd_identifier=row.get("dtd_identifier") or "",
            numeric_precision=row.get("numeric_precision"),
            numeric_scale=row.get("numeric_scale"),
            character_set_name=row.get("character_set_name"),
            collation_name=row.get("collation_name"),
        ))
    return tuple(params)


def merge_extended_parameters(
    parameters: tuple[CatalogParameter, ...],
    extended: tuple[ExtendedParameter, ...],
    source_path: str | None = None,
) -> tuple[CatalogParameter, ...]:
    """
    Merge ``-- param:`` declarations into the catalog parameters by name.

    Raises:
        ReconciliationError: If a declared parameter has no catalog counterpart.
    """
    by_name = {p.name: p for p in parameters}
    for spec in extended:
        if spec.name not in by_name:
            raise ReconciliationError(
                f"Specific parameter '{spec.name}' does not exist.",
                source_path=source_path,
            )
        by_name[spec.name] = by_name[spec.name].merged(spec)
    return tuple(by_name[p.name] for p in parameters)


# ---------------------------------------------------------------------------
# Bulk insert table
# ---------------------------------------------------------------------------

def table_exists(data_layer: AbstractDataLayer, table_name: str) -> bool:
    """Return True if ``table_name`` is a permanent table of the current schema."""
    sql = _TABLE_EXISTS_SQL.format(table_name=data_layer.quote_string(table_name))
    return bool(data_layer.execute_singleton0(sql))


@contextmanager
def materialized_table(
    data_layer: AbstractDataLayer,
    routine_name: str,
    table_name: str,
) -> Iterator[bool]:
    """
    Make sure the bulk insert table exists while the block runs.

    A permanent table is used as is.  Otherwise the routine is called once to
    create its temporary table, and the temporary table is dropped when the
    block exits, whether it raised or not.

    Yields:
        True if the table is temporary.
    """
    if table_exists(data_layer, table_name):
        yield False
        return

    data_layer.execute_none(f"call {backtick(routine_name)}()")
    try:
        yield True
    finally:
        data_layer.execute_none(f"drop temporary table if exists {backtick(table_name)}")


def fetch_table_columns(data_layer: AbstractDataLayer, table_name: str) -> TableColumns:
    """Return the column names and base types of a table, in table order."""
    rows = data_layer.execute_rows(f"describe {backtick(table_name)}")
    fields = []
    types = []
    for row in rows:
        fields.append(row["Field"])
        match = _TYPE_WORD_RE.search(str(row["Type"]))
        types.append(match.group(0) if match else "")
    return TableColumns(fields=tuple(fields), column_types=tuple(types))


def fetch_bulk_insert_columns(
    data_layer: AbstractDataLayer,
    routine_name: str,
    designation: Designation,
    source_path: str | None = None,
) -> TableColumns:
    """
    Introspect the target table of a ``bulk_insert`` routine.

    Raises:
        ColumnCountError: If the number of designated columns differs from the
                          number of table columns.
    """
    with materialized_table(data_layer, routine_name, designation.table_name) as temporary:
        columns = fetch_table_columns(data_layer, designation.table_name)
        logger.debug(
            "Bulk insert table %s (%s): %d columns",
            designation.table_name,
            "temporary" if temporary else "permanent",
            len(columns.fields),
        )

    expected = len(designation.columns)
    got = len(columns.fields)
    if expected != got:
        raise ColumnCountError(
            f"Number of fields {expected} and number of columns {got} don't match.",
            source_path=source_path,
            expected=expected,
            got=got,
        )
    return columns
