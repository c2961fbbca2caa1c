"""Tests for document.batch.apply_batch."""

from document.batch import apply_batch
from document.editor import EditOperation

DOC = "# Plan\n\n## Goals\nShip it.\n\n## Risks\nNone yet."


def _op(**fields):
    return EditOperation.from_fields(**fields)


class TestApplyBatch:
    def test_five_operations_two_failing(self):
        ops = [
            _op(type="replace", selection_mode="search", search_text="Ship it.", new_content="Ship v2."),
            # Depends on the first edit having run
            _op(type="insert", selection_mode="search", search_text="Ship v2.", new_content=" Soon."),
            _op(type="delete", selection_mode="section", section_title="Budget"),
            _op(type="replace", selection_mode="section", section_title="Risks", new_content="## Risks\nScope creep."),
            _op(type="replace", selection_mode="range", start_line=5, end_line=2, new_content="x"),
        ]
        result = apply_batch(DOC, ops)

        assert result.content == "# Plan\n\n## Goals\nShip v2. Soon.\n\n## Risks\nScope creep."
        assert len(result.applied) == 3
        assert result.failed == [
            'Edit 3: Section "Budget" not found',
            "Edit 5: Invalid line range 5-2",
        ]
        assert result.changed
        assert result.should_persist

    def test_applied_descriptions(self):
        result = apply_batch(DOC, [
            _op(type="replace", selection_mode="search", search_text="None yet.", new_content="Some."),
            _op(type="delete", selection_mode="range", start_line=0, end_line=1),
        ])
        assert result.applied == ["replace (search): None yet.", "delete (range): lines 0-1"]

    def test_all_failed_persists_nothing(self):
        result = apply_batch(DOC, [
            _op(type="delete", selection_mode="section", section_title="Nope"),
            _op(type="replace", selection_mode="search", search_text="x", new_content=None),
        ])
        assert result.applied == []
        assert len(result.failed) == 2
        assert result.content == DOC
        assert not result.changed
        assert not result.should_persist

    def test_applied_without_change(self):
        result = apply_batch(DOC, [
            _op(type="replace", selection_mode="search", search_text="Ship it.", new_content="Ship it."),
        ])
        assert result.applied
        assert not result.changed
        assert not result.should_persist

    def test_empty_batch(self):
        result = apply_batch(DOC, [])
        assert result.content == DOC
        assert not result.should_persist
