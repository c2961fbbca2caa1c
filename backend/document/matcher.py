"""Locate model-quoted text inside a live document.

The model describes the text it wants to change by quoting it, and its
quote is not always byte-exact (collapsed whitespace, a flipped case, a
dropped comma).  Exact search runs first and is authoritative; only when
the snippet does not occur verbatim do we fall back to a fuzzy windowed
search, which is rejected below a similarity threshold rather than
returning a confident wrong location.
"""

import logging
from dataclasses import dataclass

from rapidfuzz import fuzz

logger = logging.getLogger(__name__)

# Similarity (0-100) below which a fuzzy candidate counts as "not found".
DEFAULT_THRESHOLD = 60.0


@dataclass(frozen=True)
class Match:
    start: int
    end: int
    score: float
    exact: bool

    @property
    def length(self) -> int:
        return self.end - self.start


def count_occurrences(haystack: str, needle: str) -> int:
    """Non-overlapping exact occurrences, the same ones str.replace would hit."""
    if not needle:
        return 0
    return haystack.count(needle)


def locate(
    haystack: str,
    needle: str,
    hint: int = 0,
    threshold: float = DEFAULT_THRESHOLD,
) -> Match | None:
    """Find ``needle`` in ``haystack``, exactly or approximately.

    Args:
        haystack: The document text.
        needle: The snippet to find.
        hint: Offset where the snippet is expected; exact and fuzzy search
            both look from here first and then fall back to the whole text.
        threshold: Minimum fuzzy similarity (0-100) to accept.

    Returns:
        A Match, or None when nothing similar enough exists.
    """
    if not needle or not haystack:
        return None

    hint = max(0, min(hint, len(haystack)))

    index = haystack.find(needle, hint)
    if index == -1 and hint:
        index = haystack.find(needle)
    if index != -1:
        return Match(start=index, end=index + len(needle), score=100.0, exact=True)

    candidates: list[Match] = []
    if hint:
        found = _fuzzy(haystack[hint:], needle, threshold)
        if found is not None:
            candidates.append(
                Match(start=found.start + hint, end=found.end + hint, score=found.score, exact=False)
            )
    found = _fuzzy(haystack, needle, threshold)
    if found is not None:
        candidates.append(found)

    if not candidates:
        logger.debug("No match for %r (threshold %.0f)", needle[:50], threshold)
        return None

    # Best score wins; ties go to the earliest, then the longer span.
    return min(candidates, key=lambda m: (-m.score, m.start, -m.length))


def _fuzzy(haystack: str, needle: str, threshold: float) -> Match | None:
    if not haystack:
        return None
    alignment = fuzz.partial_ratio_alignment(needle, haystack, score_cutoff=threshold)
    if alignment is None or alignment.score < threshold:
        return None
    if alignment.dest_end <= alignment.dest_start:
        return None
    return Match(
        start=alignment.dest_start,
        end=alignment.dest_end,
        score=alignment.score,
        exact=False,
    )
