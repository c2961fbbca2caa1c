"""Strip numbered citation markers and the trailing references section."""

import re

CITATION_RE = re.compile(r"\[\d+\]")
REFERENCES_RE = re.compile(r"^##\s+References\b.*", re.MULTILINE | re.DOTALL)
_SPACES_RE = re.compile(r"(?<=\S)[ \t]{2,}")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"[ \t]+([.,;:!?])")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def remove_citations(content: str, remove_references_section: bool = True) -> tuple[str, int, bool]:
    """Return (cleaned content, number of markers removed, references removed).

    The references section goes first, so markers listed inside it are not
    counted as citations in the body.
    """
    cleaned = content
    references_removed = False
    if remove_references_section and REFERENCES_RE.search(cleaned):
        cleaned = REFERENCES_RE.sub("", cleaned)
        references_removed = True

    count = len(CITATION_RE.findall(cleaned))
    cleaned = CITATION_RE.sub("", cleaned)

    cleaned = _SPACES_RE.sub(" ", cleaned)
    cleaned = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", cleaned)
    cleaned = _TRAILING_SPACE_RE.sub("", cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)
    return cleaned.strip(), count, references_removed
