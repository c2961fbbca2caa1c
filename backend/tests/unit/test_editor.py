"""Tests for document.editor.apply_edit across selection modes and edit types."""

import pytest

from document.editor import (
    EditFailure,
    EditOperation,
    EditSuccess,
    EditType,
    RangeSelection,
    SearchSelection,
    SectionSelection,
    apply_edit,
)

DOC = "# Title\n\nIntro text.\n\n## Results\nGood results.\n\n## Methods\nSurvey."


def _op(type_, selection, new_content=None):
    return EditOperation(EditType(type_), selection, new_content)


# ---------- search mode ----------

class TestSearchMode:
    def test_replace_all_exact_occurrences(self):
        result = apply_edit("a cat and a cat", _op("replace", SearchSelection("cat"), "dog"))
        assert isinstance(result, EditSuccess)
        assert result.content == "a dog and a dog"
        assert "2 occurrence(s)" in result.description

    def test_delete(self):
        result = apply_edit("keep [drop] keep", _op("delete", SearchSelection(" [drop]")))
        assert result.content == "keep keep"

    def test_insert_after_each_occurrence(self):
        result = apply_edit("x. y.", _op("insert", SearchSelection("."), "!"))
        assert result.content == "x.! y.!"

    def test_empty_new_content_is_legal(self):
        result = apply_edit("one two", _op("replace", SearchSelection(" two"), ""))
        assert result.content == "one"

    def test_fuzzy_replace_when_quote_drifted(self):
        content = "The quick brown fox jumps over the lazy dog."
        result = apply_edit(content, _op("replace", SearchSelection("The quick  brown fox"), "A slow red fox"))
        assert isinstance(result, EditSuccess)
        assert "A slow red fox" in result.content
        assert "quick" not in result.content
        assert result.content.endswith("jumps over the lazy dog.")
        assert "approximate match" in result.description

    def test_unrelated_text_is_not_found(self):
        result = apply_edit(DOC, _op("replace", SearchSelection("Quantum zebras juggle 42 kumquats"), "x"))
        assert isinstance(result, EditFailure)
        assert result.code == "text_not_found"
        assert "Quantum zebras juggle 42 kumquats" in result.reason

    def test_reason_truncates_long_search_text(self):
        needle = "Z" * 80
        result = apply_edit("short", _op("delete", SearchSelection(needle)))
        assert result.code == "text_not_found"
        assert "Z" * 50 in result.reason
        assert "Z" * 51 not in result.reason


# ---------- section mode ----------

class TestSectionMode:
    def test_replace_section(self):
        result = apply_edit(DOC, _op("replace", SectionSelection("results"), "## Findings\nGreat."))
        assert result.content == "# Title\n\nIntro text.\n\n## Findings\nGreat.\n## Methods\nSurvey."

    def test_delete_section(self):
        result = apply_edit(DOC, _op("delete", SectionSelection("Methods")))
        assert result.content == "# Title\n\nIntro text.\n\n## Results\nGood results.\n"

    def test_insert_goes_before_heading(self):
        result = apply_edit(DOC, _op("insert", SectionSelection("Methods"), "## Background\nContext."))
        assert "## Background\nContext.\n## Methods\nSurvey." in result.content
        assert result.content.index("## Results") < result.content.index("## Background")

    def test_missing_section(self):
        result = apply_edit(DOC, _op("replace", SectionSelection("Discussion"), "x"))
        assert isinstance(result, EditFailure)
        assert result.code == "section_not_found"


# ---------- range mode ----------

class TestRangeMode:
    CONTENT = "l0\nl1\nl2\nl3"

    def test_replace_range(self):
        result = apply_edit(self.CONTENT, _op("replace", RangeSelection(1, 3), "new"))
        assert result.content == "l0\nnew\nl3"

    def test_delete_range(self):
        result = apply_edit(self.CONTENT, _op("delete", RangeSelection(0, 2)))
        assert result.content == "l2\nl3"

    def test_insert_pushes_lines_down(self):
        result = apply_edit(self.CONTENT, _op("insert", RangeSelection(2), "ins"))
        assert result.content == "l0\nl1\nins\nl2\nl3"

    def test_range_is_clamped(self):
        result = apply_edit(self.CONTENT, _op("replace", RangeSelection(2, 99), "tail"))
        assert result.content == "l0\nl1\ntail"
        appended = apply_edit(self.CONTENT, _op("insert", RangeSelection(50), "end"))
        assert appended.content == "l0\nl1\nl2\nl3\nend"

    @pytest.mark.parametrize("start,end", [(-1, 2), (3, 1)])
    def test_invalid_range(self, start, end):
        result = apply_edit(self.CONTENT, _op("delete", RangeSelection(start, end)))
        assert isinstance(result, EditFailure)
        assert result.code == "invalid_range"


# ---------- missing parameters ----------

class TestMissingParameters:
    @pytest.mark.parametrize("op", [
        EditOperation(EditType.REPLACE, SearchSelection(None), "x"),
        EditOperation(EditType.REPLACE, SearchSelection(""), "x"),
        EditOperation(EditType.DELETE, SectionSelection(None)),
        EditOperation(EditType.DELETE, RangeSelection(None, 2)),
        EditOperation(EditType.REPLACE, RangeSelection(1, None), "x"),
        EditOperation(EditType.REPLACE, SearchSelection("Intro"), None),
        EditOperation(EditType.INSERT, SectionSelection("Methods"), None),
    ])
    def test_reports_missing_parameter(self, op):
        result = apply_edit(DOC, op)
        assert isinstance(result, EditFailure)
        assert result.code == "missing_parameter"
        assert not result.ok


class TestEditOperation:
    def test_from_fields(self):
        op = EditOperation.from_fields("delete", "range", start_line=1, end_line=2)
        assert op.type == EditType.DELETE
        assert op.selection == RangeSelection(1, 2)

    def test_from_fields_rejects_unknown_mode(self):
        with pytest.raises(ValueError):
            EditOperation.from_fields("replace", "regex", search_text="x")

    def test_describe(self):
        assert EditOperation.from_fields("replace", "search", search_text="cat", new_content="dog").describe() == (
            "replace (search): cat"
        )
        assert EditOperation.from_fields("delete", "range", start_line=1, end_line=3).describe() == (
            "delete (range): lines 1-3"
        )
