"""Apply a single edit operation to markdown content.

An edit picks a target (by quoted text, by section heading or by line
range) and replaces, deletes or inserts at it.  Every outcome is a value:
EditSuccess with the new content, or EditFailure with a reason code.  Batch
and tool callers rely on that to keep going after one bad operation.
"""

import enum
import logging
from dataclasses import dataclass
from typing import ClassVar, Union

from document.diff import apply_patch, make_patch
from document.matcher import DEFAULT_THRESHOLD, count_occurrences, locate
from document.sections import find_section

logger = logging.getLogger(__name__)


class EditType(str, enum.Enum):
    REPLACE = "replace"
    DELETE = "delete"
    INSERT = "insert"


@dataclass(frozen=True)
class SearchSelection:
    mode: ClassVar[str] = "search"
    search_text: str | None


@dataclass(frozen=True)
class SectionSelection:
    mode: ClassVar[str] = "section"
    section_title: str | None


@dataclass(frozen=True)
class RangeSelection:
    mode: ClassVar[str] = "range"
    start_line: int | None
    end_line: int | None = None


Selection = Union[SearchSelection, SectionSelection, RangeSelection]


@dataclass(frozen=True)
class EditOperation:
    type: EditType
    selection: Selection
    new_content: str | None = None

    @classmethod
    def from_fields(
        cls,
        type: str,
        selection_mode: str,
        search_text: str | None = None,
        section_title: str | None = None,
        start_line: int | None = None,
        end_line: int | None = None,
        new_content: str | None = None,
    ) -> "EditOperation":
        """Build an operation from the flat field layout the tools accept."""
        if selection_mode == "search":
            selection = SearchSelection(search_text)
        elif selection_mode == "section":
            selection = SectionSelection(section_title)
        elif selection_mode == "range":
            selection = RangeSelection(start_line, end_line)
        else:
            raise ValueError(f"Unknown selection mode: {selection_mode!r}")
        return cls(type=EditType(type), selection=selection, new_content=new_content)

    def describe(self) -> str:
        sel = self.selection
        if isinstance(sel, SearchSelection):
            target = (sel.search_text or "")[:50]
        elif isinstance(sel, SectionSelection):
            target = sel.section_title or ""
        else:
            target = f"lines {sel.start_line}-{sel.end_line}"
        return f"{self.type.value} ({sel.mode}): {target}"


@dataclass(frozen=True)
class EditSuccess:
    ok: ClassVar[bool] = True
    content: str
    description: str


@dataclass(frozen=True)
class EditFailure:
    ok: ClassVar[bool] = False
    code: str  # missing_parameter | section_not_found | text_not_found | invalid_range
    reason: str


EditResult = Union[EditSuccess, EditFailure]


def apply_edit(content: str, op: EditOperation, threshold: float = DEFAULT_THRESHOLD) -> EditResult:
    """Apply ``op`` to ``content``.

    Args:
        content: Current markdown.
        op: The operation to apply.
        threshold: Minimum fuzzy similarity for search-mode fallback matches.

    Returns:
        EditSuccess or EditFailure; never raises for a bad operation.
    """
    problem = _missing_parameter(op)
    if problem:
        return EditFailure("missing_parameter", problem)

    sel = op.selection
    if isinstance(sel, SearchSelection):
        return _apply_search(content, op, sel.search_text, threshold)
    if isinstance(sel, SectionSelection):
        return _apply_section(content, op, sel.section_title)
    return _apply_range(content, op, sel.start_line, sel.end_line)


def _missing_parameter(op: EditOperation) -> str | None:
    sel = op.selection
    if isinstance(sel, SearchSelection) and not sel.search_text:
        return "searchText is required when selectionMode='search'"
    if isinstance(sel, SectionSelection) and not (sel.section_title or "").strip():
        return "sectionTitle is required when selectionMode='section'"
    if isinstance(sel, RangeSelection):
        if sel.start_line is None:
            return "startLine is required when selectionMode='range'"
        if sel.end_line is None and op.type != EditType.INSERT:
            return "startLine and endLine are required when selectionMode='range'"
    if op.type in (EditType.REPLACE, EditType.INSERT) and op.new_content is None:
        return f"newContent is required when operation='{op.type.value}'"
    return None


# ---------------------------------------------------------------------------
# Search mode
# ---------------------------------------------------------------------------

def _apply_search(content: str, op: EditOperation, text: str, threshold: float) -> EditResult:
    new = op.new_content or ""
    label = text[:50]
    count = count_occurrences(content, text)

    if count:
        if op.type == EditType.REPLACE:
            return EditSuccess(
                content.replace(text, new),
                f'Replaced {count} occurrence(s) of "{label}"',
            )
        if op.type == EditType.DELETE:
            return EditSuccess(
                content.replace(text, ""),
                f'Deleted {count} occurrence(s) of "{label}"',
            )
        return EditSuccess(
            content.replace(text, text + new),
            f'Inserted content after {count} occurrence(s) of "{label}"',
        )

    match = locate(content, text, threshold=threshold)
    if match is None:
        logger.info("Search text not found: %r", label)
        return EditFailure("text_not_found", f'Text "{label}" not found in document')

    if op.type == EditType.REPLACE:
        replacement = new
    elif op.type == EditType.DELETE:
        replacement = ""
    else:
        replacement = text + new

    hunks = make_patch(text, replacement)
    if not hunks:
        return EditSuccess(content, f'No change needed for "{label}"')

    patched, flags = apply_patch(hunks, content, hint_offset=match.start, threshold=threshold)
    if not all(flags):
        logger.info(
            "Fuzzy match for %r at %d (%.0f%%) but %d/%d hunks failed",
            label, match.start, match.score, flags.count(False), len(flags),
        )
        return EditFailure(
            "text_not_found",
            f'Found text similar to "{label}" but the change could not be applied cleanly',
        )

    verb = {EditType.REPLACE: "Replaced", EditType.DELETE: "Deleted", EditType.INSERT: "Inserted after"}
    return EditSuccess(
        patched,
        f'{verb[op.type]} approximate match of "{label}" ({match.score:.0f}% similar)',
    )


# ---------------------------------------------------------------------------
# Section and line-range modes
# ---------------------------------------------------------------------------

def _apply_section(content: str, op: EditOperation, title: str) -> EditResult:
    section = find_section(content, title)
    if section is None:
        return EditFailure("section_not_found", f'Section "{title}" not found')

    lines = content.split("\n")
    before = lines[:section.line_start]
    body = lines[section.line_start:section.line_end]
    after = lines[section.line_end:]

    if op.type == EditType.REPLACE:
        edited = before + [op.new_content] + after
        description = f'Replaced section "{section.title}"'
    elif op.type == EditType.DELETE:
        edited = before + after
        description = f'Deleted section "{section.title}"'
    else:
        edited = before + [op.new_content] + body + after
        description = f'Inserted content before section "{section.title}"'
    return EditSuccess("\n".join(edited), description)


def _apply_range(content: str, op: EditOperation, start: int, end: int | None) -> EditResult:
    if start < 0 or (end is not None and end < start):
        return EditFailure("invalid_range", f"Invalid line range {start}-{end}")

    lines = content.split("\n")
    # Clamp to actual line count
    start = min(start, len(lines))
    end = start if end is None else min(end, len(lines))

    if op.type == EditType.REPLACE:
        edited = lines[:start] + [op.new_content] + lines[end:]
        description = f"Replaced lines {start}-{end}"
    elif op.type == EditType.DELETE:
        edited = lines[:start] + lines[end:]
        description = f"Deleted lines {start}-{end}"
    else:
        edited = lines[:start] + [op.new_content] + lines[start:]
        description = f"Inserted content at line {start}"
    return EditSuccess("\n".join(edited), description)
