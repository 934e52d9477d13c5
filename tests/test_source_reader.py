"""
Source discovery and reading: test_source_reader.py

Covers:

source_reader.py:
  - discover_sources is recursive, filters by extension, sorted by path
  - Missing source directory → empty list
  - read_source strips a UTF-8 BOM and keeps line structure
  - mtime is whole seconds
  - Unreadable / non-UTF-8 file → ParseError

identifiers.py:
  - routine_name_from_path strips the extension only when present
  - backtick rejects anything but a plain identifier
"""

from __future__ import annotations

import sys, pathlib
_root = str(pathlib.Path(__file__).parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

import pytest

from tests.fixtures.mysql_mocks import write_routine

from stratum.configs.exceptions import ParseError
from stratum.discovery.source_reader import discover_sources, read_source
from stratum.utils.identifiers import backtick, routine_name_from_path


class TestDiscover:

    def test_recursive_sorted(self, tmp_path):
        b = write_routine(tmp_path, "abc_b")
        a = write_routine(tmp_path / "sub", "abc_a")
        (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
        assert discover_sources(tmp_path, ".psql") == sorted([a, b])

    def test_missing_directory(self, tmp_path):
        assert discover_sources(tmp_path / "missing", ".psql") == []


class TestRead:

    def test_bom_stripped(self, tmp_path):
        path = tmp_path / "abc_test.psql"
        path.write_bytes("\ufeffcreate procedure abc_test()\nbegin\nend".encode("utf-8"))
        source = read_source(path, ".psql")
        assert source.text.startswith("create")
        assert source.lines == ("create procedure abc_test()", "begin", "end")
        assert source.routine_name == "abc_test"

    def test_mtime(self, tmp_path):
        path = write_routine(tmp_path, "abc_test", mtime=1_700_000_000)
        assert read_source(path, ".psql").mtime == 1_700_000_000

    def test_missing_file(self, tmp_path):
        with pytest.raises(ParseError, match="Cannot read"):
            read_source(tmp_path / "abc_missing.psql", ".psql")

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "abc_test.psql"
        path.write_bytes(b"create procedure abc_test() \xff\xfe")
        with pytest.raises(ParseError, match="UTF-8"):
            read_source(path, ".psql")


class TestIdentifiers:

    def test_routine_name(self):
        assert routine_name_from_path("lib/psql/abc_get.psql", ".psql") == "abc_get"
        assert routine_name_from_path("lib/psql/abc_get.sql", ".psql") == "abc_get.sql"

    def test_backtick(self):
        assert backtick("abc_user") == "`abc_user`"

    @pytest.mark.parametrize("bad", ["", "a b", "x`y", "t;drop"])
    def test_backtick_rejects(self, bad):
        with pytest.raises(ValueError):
            backtick(bad)
