"""
Catalog reconciler: test_catalog.py

Covers:

catalog.py — routines and parameters:
  - fetch_routine_catalog keys entries by name, routine type lower-cased
  - fetch_parameters keeps the catalog's ordinal order
  - A routine without parameters (null parameter name) → empty tuple
  - Type descriptor appends character set and collation clauses
  - merge_extended_parameters merges by name
  - Unknown extended parameter → ReconciliationError

catalog.py — bulk insert table:
  - Permanent table: no call, no drop
  - Temporary table: routine called once, table dropped afterwards
  - Temporary table dropped even when introspection fails
  - Column base type is the leading word of the full type
  - Column count mismatch → ColumnCountError, for n in {0, 1, many}
"""

from __future__ import annotations

import sys, pathlib
_root = str(pathlib.Path(__file__).parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

import pytest

from tests.fixtures.mysql_mocks import (
    ROUTINES_QUERY,
    TABLES_QUERY,
    MockDataLayer,
    describe_key,
    make_describe_rows,
    make_param_row,
    make_routine_row,
    params_key,
)

from stratum.configs.exceptions import ColumnCountError, DataLayerError, ReconciliationError
from stratum.discovery.catalog import (
    fetch_bulk_insert_columns,
    fetch_parameters,
    fetch_routine_catalog,
    materialized_table,
    merge_extended_parameters,
)
from stratum.models.models import CatalogParameter, Designation, ExtendedParameter


# ---------------------------------------------------------------------------
# Routines and parameters
# ---------------------------------------------------------------------------

class TestRoutineCatalog:

    def test_entries_keyed_by_name(self):
        dl = MockDataLayer(rows={ROUTINES_QUERY: [
            make_routine_row("abc_a", "PROCEDURE"),
            make_routine_row("abc_b", "FUNCTION", sql_mode="ANSI"),
        ]})
        catalog = fetch_routine_catalog(dl)
        assert set(catalog) == {"abc_a", "abc_b"}
        assert catalog["abc_b"].routine_type == "function"
        assert catalog["abc_b"].sql_mode == "ANSI"

    def test_empty_schema(self):
        assert fetch_routine_catalog(MockDataLayer()) == {}


class TestParameters:

    def test_ordinal_order_kept(self):
        dl = MockDataLayer(rows={params_key("abc_test"): [
            make_param_row("p_b", "int"),
            make_param_row("p_a", "varchar", "varchar(80)", character_set_name="utf8mb4",
                           collation_name="utf8mb4_general_ci"),
        ]})
        params = fetch_parameters(dl, "abc_test")
        assert [p.name for p in params] == ["p_b", "p_a"]
        assert params[1].dtd_identifier == "varchar(80)"

    def test_query_names_routine(self):
        dl = MockDataLayer()
        fetch_parameters(dl, "abc_test")
        assert "'abc_test'" in dl.executed[0]
        assert "ordinal_position" in dl.executed[0]

    def test_routine_without_parameters(self):
        dl = MockDataLayer(rows={params_key("abc_test"): [make_param_row(None, None)]})
        assert fetch_parameters(dl, "abc_test") == ()

    def test_type_descriptor(self):
        param = CatalogParameter(
            name="p_name",
            data_type="varchar",
            dtd_identifier="varchar(80)",
            character_set_name="utf8mb4",
            collation_name="utf8mb4_bin",
        )
        assert param.data_type_descriptor == "varchar(80) character set utf8mb4 collation utf8mb4_bin"

    def test_type_descriptor_numeric(self):
        assert CatalogParameter(name="p_id", data_type="int", dtd_identifier="int").data_type_descriptor == "int"


class TestMerge:

    PARAMS = (
        CatalogParameter(name="p_id", data_type="int"),
        CatalogParameter(name="p_ids", data_type="text"),
    )

    def test_merge_by_name(self):
        merged = merge_extended_parameters(
            self.PARAMS, (ExtendedParameter(name="p_ids", data_type="list_of_int"),)
        )
        assert [p.name for p in merged] == ["p_id", "p_ids"]
        assert merged[0].extended is None
        assert merged[1].effective_type == "list_of_int"
        assert merged[1].data_type == "text"

    def test_nothing_to_merge(self):
        assert merge_extended_parameters(self.PARAMS, ()) == self.PARAMS

    def test_unknown_parameter(self):
        with pytest.raises(ReconciliationError, match="Specific parameter 'p_other' does not exist"):
            merge_extended_parameters(
                self.PARAMS,
                (ExtendedParameter(name="p_other", data_type="list_of_int"),),
                "lib/psql/abc_test.psql",
            )


# ---------------------------------------------------------------------------
# Bulk insert table
# ---------------------------------------------------------------------------

def _bulk(columns: tuple[str, ...]) -> Designation:
    return Designation(type="bulk_insert", table_name="tmp_user", columns=columns)


def _describe(n: int) -> list[dict]:
    return make_describe_rows(*[(f"col{i}", "int(11)") for i in range(n)])


class TestBulkInsertTable:

    def test_permanent_table(self):
        dl = MockDataLayer(
            rows={describe_key("tmp_user"): _describe(2)},
            scalars={TABLES_QUERY: 1},
        )
        columns = fetch_bulk_insert_columns(dl, "abc_insert", _bulk(("a", "b")))
        assert columns.fields == ("col0", "col1")
        assert dl.statements_containing("call ") == []
        assert dl.statements_containing("drop temporary table") == []

    def test_temporary_table_called_and_dropped(self):
        dl = MockDataLayer(rows={describe_key("tmp_user"): _describe(1)})
        fetch_bulk_insert_columns(dl, "abc_insert", _bulk(("a",)))
        assert dl.statements_containing("call `abc_insert`()") == ["call `abc_insert`()"]
        assert dl.executed[-1] == "drop temporary table if exists `tmp_user`"

    def test_temporary_table_dropped_on_failure(self):
        dl = MockDataLayer(fail_on={"describe": DataLayerError("boom")})
        with pytest.raises(DataLayerError):
            fetch_bulk_insert_columns(dl, "abc_insert", _bulk(("a",)))
        assert dl.executed[-1] == "drop temporary table if exists `tmp_user`"

    def test_materialized_table_reports_temporary(self):
        dl = MockDataLayer()
        with materialized_table(dl, "abc_insert", "tmp_user") as temporary:
            assert temporary is True

    def test_base_type_is_leading_word(self):
        dl = MockDataLayer(
            rows={describe_key("tmp_user"): make_describe_rows(
                ("id", "int(10) unsigned"), ("name", "varchar(80)"), ("kind", "enum('a','b')"),
            )},
            scalars={TABLES_QUERY: 1},
        )
        columns = fetch_bulk_insert_columns(dl, "abc_insert", _bulk(("a", "b", "c")))
        assert columns.column_types == ("int", "varchar", "enum")

    @pytest.mark.parametrize("declared", [0, 1, 3])
    @pytest.mark.parametrize("actual", [0, 1, 3])
    def test_column_count(self, declared, actual):
        dl = MockDataLayer(
            rows={describe_key("tmp_user"): _describe(actual)},
            scalars={TABLES_QUERY: 1},
        )
        designation = _bulk(tuple(f"c{i}" for i in range(declared)))
        if declared == actual:
            columns = fetch_bulk_insert_columns(dl, "abc_insert", designation)
            assert len(columns.fields) == actual
        else:
            with pytest.raises(ColumnCountError) as exc_info:
                fetch_bulk_insert_columns(dl, "abc_insert", designation, "lib/psql/abc_insert.psql")
            assert (exc_info.value.expected, exc_info.value.got) == (declared, actual)
            assert f"Number of fields {declared} and number of columns {actual} don't match." in str(exc_info.value)
