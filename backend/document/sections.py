"""Markdown heading structure.

Splits a markdown document into sections on ATX headings (``#`` to
``######``).  A section runs from its heading line up to the next heading
of the same or a higher level, so a ``##`` section contains its ``###``
subsections.  Line numbers are 0-based indices into ``content.split("\\n")``.
"""

import re
from dataclasses import dataclass, field

HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")


@dataclass
class Section:
    """One heading and the line range it governs."""
    level: int
    title: str
    line_start: int  # the heading line
    line_end: int    # index past the last line of the section
    content: str | None = None

    def to_dict(self) -> dict:
        data = {
            "level": self.level,
            "title": self.title,
            "lineStart": self.line_start,
            "lineEnd": self.line_end,
        }
        if self.content is not None:
            data["content"] = self.content
        return data


@dataclass
class DocumentStructure:
    title: str | None
    sections: list[Section] = field(default_factory=list)
    word_count: int = 0


def _heading(line: str) -> tuple[int, str] | None:
    match = HEADING_RE.match(line.strip())
    if not match:
        return None
    return len(match.group(1)), match.group(2).strip()


def parse_sections(markdown: str, include_content: bool = False) -> list[Section]:
    """Return every heading section in document order."""
    lines = markdown.split("\n")
    headings = []
    for i, line in enumerate(lines):
        parsed = _heading(line)
        if parsed:
            headings.append((i, parsed[0], parsed[1]))

    sections: list[Section] = []
    for k, (line_no, level, title) in enumerate(headings):
        line_end = len(lines)
        for next_line, next_level, _ in headings[k + 1:]:
            if next_level <= level:
                line_end = next_line
                break
        section = Section(level=level, title=title, line_start=line_no, line_end=line_end)
        if include_content:
            section.content = "\n".join(lines[line_no:line_end])
        sections.append(section)
    return sections


def find_section(markdown: str, title: str) -> Section | None:
    """First section whose heading contains ``title``, case-insensitively."""
    needle = title.strip().lower()
    if not needle:
        return None
    for section in parse_sections(markdown):
        if needle in section.title.lower():
            return section
    return None


def document_title(markdown: str) -> str | None:
    """Text of the first level-1 heading, if the document has one."""
    for section in parse_sections(markdown):
        if section.level == 1:
            return section.title
    return None


def count_words(text: str) -> int:
    return len(text.split())


def outline(markdown: str, include_content: bool = False) -> DocumentStructure:
    sections = parse_sections(markdown, include_content=include_content)
    title = next((s.title for s in sections if s.level == 1), None)
    return DocumentStructure(title=title, sections=sections, word_count=count_words(markdown))
