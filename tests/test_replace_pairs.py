"""
Placeholder replacement table: test_replace_pairs.py

Covers:

replace_pairs.py:
  - strip_quotes strips one matching pair only
  - Constants file: ``NAME=value`` → ``@NAME@`` (upper-cased), quotes stripped
  - Blank lines and ``#`` comments skipped; non-assignments skipped
  - Unreadable constants file → MetadataError
  - Column types: ``@TABLE.COLUMN%TYPE@`` → full type (+ character set)
  - Constants win over column types
  - No data layer → constants only
"""

from __future__ import annotations

import sys, pathlib
_root = str(pathlib.Path(__file__).parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

import pytest

from tests.fixtures.mysql_mocks import COLUMNS_QUERY, MockDataLayer

from stratum.configs.exceptions import MetadataError
from stratum.discovery.replace_pairs import (
    build_replace_pairs,
    fetch_column_types,
    read_constants,
    strip_quotes,
)

CONSTANTS = """\
# status limits
abc_max_status=100

ABC_LABEL='draft'
ABC_TITLE = "The title"
ABC_MIXED='odd"
not an assignment
"""


def _column_row(table, column, column_type, charset=None):
    return {
        "table_name": table,
        "column_name": column,
        "column_type": column_type,
        "character_set_name": charset,
    }


class TestStripQuotes:

    @pytest.mark.parametrize("raw,expected", [
        ("'value'", "value"),
        ('"value"', "value"),
        ("value", "value"),
        ("'value\"", "'value\""),
        ("''", ""),
        ("'", "'"),
        ("\"'x'\"", "'x'"),
    ])
    def test_strip(self, raw, expected):
        assert strip_quotes(raw) == expected


class TestConstants:

    def test_parse(self, tmp_path):
        path = tmp_path / "constants.txt"
        path.write_text(CONSTANTS, encoding="utf-8")
        assert read_constants(path) == {
            "@ABC_MAX_STATUS@": "100",
            "@ABC_LABEL@": "draft",
            "@ABC_TITLE@": "The title",
            "@ABC_MIXED@": "'odd\"",
        }

    def test_missing_file(self, tmp_path):
        with pytest.raises(MetadataError):
            read_constants(tmp_path / "missing.txt")


class TestColumnTypes:

    def test_keys_and_values(self):
        dl = MockDataLayer(rows={COLUMNS_QUERY: [
            _column_row("abc_user", "usr_id", "int(10) unsigned"),
            _column_row("abc_user", "usr_name", "varchar(80)", "utf8mb4"),
        ]})
        assert fetch_column_types(dl) == {
            "@ABC_USER.USR_ID%TYPE@": "int(10) unsigned",
            "@ABC_USER.USR_NAME%TYPE@": "varchar(80) character set utf8mb4",
        }


class TestBuild:

    def test_constants_win(self, tmp_path):
        path = tmp_path / "constants.txt"
        path.write_text("abc_user.usr_id%type=bigint\n", encoding="utf-8")
        dl = MockDataLayer(rows={COLUMNS_QUERY: [_column_row("abc_user", "usr_id", "int(11)")]})
        assert build_replace_pairs(dl, path) == {"@ABC_USER.USR_ID%TYPE@": "bigint"}

    def test_without_data_layer(self, tmp_path):
        path = tmp_path / "constants.txt"
        path.write_text("ABC_MAX=1\n", encoding="utf-8")
        assert build_replace_pairs(None, path) == {"@ABC_MAX@": "1"}

    def test_nothing(self):
        assert build_replace_pairs(None) == {}
