"""
Documentation reconciler: test_documentation.py

Covers:

validation.py:
  - Catalog parameter missing from the DocBlock → one warning
  - ``@param`` for an unknown parameter → one warning per occurrence
  - Matching lists → no warnings
  - Every warning is logged at WARNING level

documentation.py:
  - Short and long description come from the DocBlock before the header
  - Each parameter gets its wrapper type, type descriptor and description
  - Undocumented parameter → description None plus a warning
  - Parameter descriptions are stripped line by line
  - Unsupported type → UnsupportedTypeError
  - Source without a DocBlock → empty descriptions, one warning per parameter
"""

from __future__ import annotations

import sys, pathlib
_root = str(pathlib.Path(__file__).parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

import logging

import pytest

from tests.fixtures.mysql_mocks import make_source, routine_text

from stratum.configs.exceptions import UnsupportedTypeError
from stratum.models.models import CatalogParameter, ExtendedParameter
from stratum.transformers.documentation import build_routine_doc
from stratum.utils.validation import validate_parameter_lists

DOC = """\
/**
 * Selects users by key.
 *
 * Only active users are returned.
 *
 * @param p_id  The ID of
 *              the user.
 * @param p_ids The IDs.
 */
"""


class TestValidateParameterLists:

    def test_no_warnings(self):
        assert validate_parameter_lists(["p_a", "p_b"], ["p_b", "p_a"]) == []

    def test_missing_from_doc(self):
        assert validate_parameter_lists(["p_a", "p_b"], ["p_a"]) == [
            "parameter 'p_b' is missing from doc block"
        ]

    def test_unknown_in_doc_per_occurrence(self):
        warnings = validate_parameter_lists(["p_a"], ["p_a", "p_x", "p_x"])
        assert warnings == ["unknown parameter 'p_x' found in doc block"] * 2

    def test_missing_before_unknown(self):
        warnings = validate_parameter_lists(["p_a"], ["p_x"])
        assert warnings == [
            "parameter 'p_a' is missing from doc block",
            "unknown parameter 'p_x' found in doc block",
        ]

    def test_warnings_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="stratum.utils.validation"):
            validate_parameter_lists(["p_a"], ["p_x"], "lib/psql/abc_test.psql")
        messages = [r.getMessage() for r in caplog.records]
        assert len(messages) == 2
        assert all("abc_test.psql" in m for m in messages)


class TestBuildRoutineDoc:

    PARAMS = (
        CatalogParameter(name="p_id", data_type="int", dtd_identifier="int(11)"),
        CatalogParameter(
            name="p_ids",
            data_type="text",
            dtd_identifier="text",
            character_set_name="utf8mb4",
            collation_name="utf8mb4_general_ci",
        ).merged(ExtendedParameter(name="p_ids", data_type="list_of_int")),
    )

    def _source(self, doc=DOC):
        return make_source(routine_text("abc_test", params="in p_id int, in p_ids text", doc=doc))

    def test_descriptions(self):
        doc, _ = build_routine_doc(self._source(), self.PARAMS)
        assert doc.short_description == "Selects users by key."
        assert doc.long_description == "Only active users are returned."

    def test_parameters(self):
        doc, warnings = build_routine_doc(self._source(), self.PARAMS)
        assert warnings == []
        p_id, p_ids = doc.parameters
        assert (p_id.name, p_id.semantic_type, p_id.data_type_descriptor) == ("p_id", "int", "int(11)")
        assert p_id.description == "The ID of\nthe user."
        assert p_ids.semantic_type == "str|list[int]"
        assert p_ids.data_type_descriptor == "text character set utf8mb4 collation utf8mb4_general_ci"
        assert p_ids.description == "The IDs."

    def test_undocumented_parameter(self):
        doc_text = "/**\n * Selects users.\n *\n * @param p_id The ID.\n */\n"
        doc, warnings = build_routine_doc(self._source(doc_text), self.PARAMS)
        assert doc.parameters[1].description is None
        assert warnings == ["parameter 'p_ids' is missing from doc block"]

    def test_unknown_documented_parameter(self):
        doc_text = DOC.replace("@param p_ids", "@param p_nope")
        doc, warnings = build_routine_doc(self._source(doc_text), self.PARAMS)
        assert warnings == [
            "parameter 'p_ids' is missing from doc block",
            "unknown parameter 'p_nope' found in doc block",
        ]

    def test_no_docblock(self):
        doc, warnings = build_routine_doc(self._source(doc=""), self.PARAMS)
        assert doc.short_description == ""
        assert len(warnings) == 2

    def test_unsupported_type(self):
        params = (CatalogParameter(name="p_id", data_type="json"),)
        with pytest.raises(UnsupportedTypeError):
            build_routine_doc(self._source(), params)
