"""
Placeholder substitution: test_placeholders.py

Covers:

placeholders.py:
  - replace_all substitutes every key in one pass
  - Longer keys win over shorter keys at the same position
  - Substituted values are never scanned again
  - substitute() replaces placeholders as written in the source
  - __LINE__ is the 1-based number of the line it appears on
  - __FILE__ / __DIR__ / __ROUTINE__ are quoted string literals
  - The caller's placeholder map is not modified (magic constants never leak)
  - Line structure is preserved
  - substitute() goes through replace_all: values are never rescanned
"""

from __future__ import annotations

import sys, pathlib
_root = str(pathlib.Path(__file__).parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

from pathlib import Path

from tests.fixtures.mysql_mocks import MockDataLayer, make_source

from stratum.transformers.placeholders import MAGIC_CONSTANTS, _pattern_for, replace_all, substitute


class TestReplaceAll:

    def test_all_keys(self):
        assert replace_all("@A@ and @B@", {"@A@": "1", "@B@": "2"}) == "1 and 2"

    def test_longest_key_first(self):
        assert replace_all("@A@ @A.B@", {"@A@": "x", "@A.B@": "y"}) == "x y"

    def test_no_rescan(self):
        assert replace_all("@A@", {"@A@": "@B@", "@B@": "never"}) == "@B@"

    def test_empty_table(self):
        assert replace_all("@A@", {}) == "@A@"


class TestSubstitute:

    TEXT = (
        "create procedure abc_test()\n"
        "begin\n"
        "  select @ABC_MAX@, __LINE__;\n"
        "  select __ROUTINE__, __LINE__;\n"
        "end"
    )

    def test_placeholders_and_line_numbers(self):
        sql = substitute(make_source(self.TEXT), "abc_test", {"@ABC_MAX@": "100"}, MockDataLayer())
        lines = sql.split("\n")
        assert lines[2] == "  select 100, 3;"
        assert lines[3] == "  select 'abc_test', 4;"

    def test_line_count_preserved(self):
        sql = substitute(make_source(self.TEXT), "abc_test", {"@ABC_MAX@": "1"}, MockDataLayer())
        assert len(sql.split("\n")) == len(self.TEXT.split("\n"))

    def test_file_and_dir_are_quoted_absolute_paths(self):
        source = make_source("select __FILE__, __DIR__;")
        sql = substitute(source, "abc_test", {}, MockDataLayer())
        real = Path(source.path).resolve()
        assert sql == f"select '{real}', '{real.parent}';"

    def test_placeholder_map_unchanged(self):
        placeholders = {"@ABC_MAX@": "100"}
        substitute(make_source(self.TEXT), "abc_test", placeholders, MockDataLayer())
        assert placeholders == {"@ABC_MAX@": "100"}
        assert not MAGIC_CONSTANTS & set(placeholders)

    def test_no_database_statements(self):
        dl = MockDataLayer()
        substitute(make_source(self.TEXT), "abc_test", {"@ABC_MAX@": "1"}, dl)
        assert dl.executed == []

    def test_values_not_substituted_again(self):
        source = make_source("select @A@, @A.B@;")
        sql = substitute(source, "abc_test", {"@A@": "'__LINE__'", "@A.B@": "2"}, MockDataLayer())
        assert sql == "select '__LINE__', 2;"

    def test_shared_pattern_matches_fresh_one(self):
        pairs = {"@A@": "x", "@A.B@": "y"}
        assert replace_all("@A.B@ @A@", pairs, _pattern_for(pairs)) == replace_all("@A.B@ @A@", pairs)
