"""Word-level diffs, diff rendering and drift-tolerant patches.

Diffs are computed with difflib.SequenceMatcher over word/whitespace tokens
(punctuation stays attached to its word), then cleaned up so a reader sees
"good." → "excellent." rather than a scatter of single-character edits.

Patches are built from an (old, new) pair and carry their own context, so
they can be applied to a base text that has drifted from ``old``, as happens
when a model quotes a paragraph slightly wrong.
"""

import html
import re
from dataclasses import dataclass
from difflib import SequenceMatcher

from document.matcher import DEFAULT_THRESHOLD, locate

DELETE = -1
EQUAL = 0
INSERT = 1

Diff = tuple[int, str]

# Characters of unchanged text kept on each side of a hunk.
PATCH_MARGIN = 16

_TOKEN_RE = re.compile(r"\S+|\s+")


def _tokens(text: str) -> list[str]:
    return _TOKEN_RE.findall(text) if text else []


def diff(old: str, new: str) -> list[Diff]:
    """Return a cleaned-up list of (op, text) pairs turning ``old`` into ``new``.

    Joining the EQUAL and DELETE texts gives back ``old``; joining EQUAL and
    INSERT texts gives ``new``.
    """
    if old == new:
        return [(EQUAL, old)] if old else []

    a = _tokens(old)
    b = _tokens(new)
    matcher = SequenceMatcher(None, a, b, autojunk=False)

    diffs: list[Diff] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            diffs.append((EQUAL, "".join(a[i1:i2])))
            continue
        if i2 > i1:
            diffs.append((DELETE, "".join(a[i1:i2])))
        if j2 > j1:
            diffs.append((INSERT, "".join(b[j1:j2])))

    return cleanup_semantic(diffs)


def _merge(diffs: list[Diff]) -> list[Diff]:
    """Coalesce each run of edits into one DELETE + one INSERT and join equalities."""
    merged: list[Diff] = []
    deleted: list[str] = []
    inserted: list[str] = []

    def flush():
        if deleted:
            merged.append((DELETE, "".join(deleted)))
        if inserted:
            merged.append((INSERT, "".join(inserted)))
        deleted.clear()
        inserted.clear()

    for op, text in diffs:
        if not text:
            continue
        if op == DELETE:
            deleted.append(text)
        elif op == INSERT:
            inserted.append(text)
        else:
            flush()
            if merged and merged[-1][0] == EQUAL:
                merged[-1] = (EQUAL, merged[-1][1] + text)
            else:
                merged.append((EQUAL, text))
    flush()
    return merged


def _edit_length(diffs: list[Diff], start: int, step: int) -> int:
    total = 0
    i = start
    while 0 <= i < len(diffs) and diffs[i][0] != EQUAL:
        total += len(diffs[i][1])
        i += step
    return total


def cleanup_semantic(diffs: list[Diff]) -> list[Diff]:
    """Fold small equalities sitting between two edits into the edits.

    An equality is folded when it is pure whitespace or no longer than the
    edits on either side of it, so "a b c" → "x y z" reads as one replacement.
    """
    diffs = _merge(diffs)
    changed = True
    while changed:
        changed = False
        for i in range(1, len(diffs) - 1):
            op, text = diffs[i]
            if op != EQUAL:
                continue
            if diffs[i - 1][0] == EQUAL or diffs[i + 1][0] == EQUAL:
                continue
            left = _edit_length(diffs, i - 1, -1)
            right = _edit_length(diffs, i + 1, 1)
            if text.isspace() or len(text) <= min(left, right):
                diffs = diffs[:i] + [(DELETE, text), (INSERT, text)] + diffs[i + 1:]
                diffs = _merge(diffs)
                changed = True
                break
    return diffs


def render_html(diffs: list[Diff]) -> str:
    """Inline HTML for the version history diff viewer."""
    parts = []
    for op, text in diffs:
        escaped = html.escape(text, quote=False).replace("\n", "&para;<br>")
        if op == INSERT:
            parts.append(f'<ins style="background:#e6ffe6;">{escaped}</ins>')
        elif op == DELETE:
            parts.append(f'<del style="background:#ffe6e6;">{escaped}</del>')
        else:
            parts.append(f"<span>{escaped}</span>")
    return "".join(parts)


def render_text(diffs: list[Diff]) -> str:
    """Compact ``[-removed-]{+added+}`` rendering for tool output."""
    parts = []
    for op, text in diffs:
        if op == INSERT:
            parts.append(f"{{+{text}+}}")
        elif op == DELETE:
            parts.append(f"[-{text}-]")
        else:
            parts.append(text)
    return "".join(parts)


def diff_stats(diffs: list[Diff]) -> dict[str, int]:
    """Words added/removed, for change descriptions."""
    added = sum(len(text.split()) for op, text in diffs if op == INSERT)
    removed = sum(len(text.split()) for op, text in diffs if op == DELETE)
    return {"words_added": added, "words_removed": removed}


@dataclass
class Hunk:
    """One contiguous change plus the unchanged text around it."""
    offset: int  # where context_before starts in the text the patch was made from
    context_before: str
    deleted: str
    inserted: str
    context_after: str

    @property
    def pattern(self) -> str:
        return self.context_before + self.deleted + self.context_after

    @property
    def replacement(self) -> str:
        return self.context_before + self.inserted + self.context_after


def make_patch(old: str, new: str, margin: int = PATCH_MARGIN) -> list[Hunk]:
    """Build hunks that turn ``old`` into ``new``, independent of any base text."""
    diffs = diff(old, new)
    hunks: list[Hunk] = []
    position = 0  # offset in old
    i = 0
    while i < len(diffs):
        op, text = diffs[i]
        if op == EQUAL:
            position += len(text)
            i += 1
            continue

        before = ""
        if i > 0 and diffs[i - 1][0] == EQUAL:
            before = diffs[i - 1][1][-margin:] if margin else ""

        deleted = ""
        inserted = ""
        while i < len(diffs) and diffs[i][0] != EQUAL:
            if diffs[i][0] == DELETE:
                deleted += diffs[i][1]
            else:
                inserted += diffs[i][1]
            i += 1

        after = ""
        if i < len(diffs) and margin:
            after = diffs[i][1][:margin]

        hunks.append(Hunk(
            offset=position - len(before),
            context_before=before,
            deleted=deleted,
            inserted=inserted,
            context_after=after,
        ))
        position += len(deleted)
    return hunks


def _translate(pattern: str, actual: str, index: int) -> int:
    """Map a position in ``pattern`` onto the corresponding position in ``actual``."""
    if pattern == actual:
        return index
    matcher = SequenceMatcher(None, pattern, actual, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if index < i1:
            continue
        if tag == "equal" and index < i2:
            return j1 + (index - i1)
        if index < i2:
            return j1
        if index == i2 and tag != "equal":
            return j2
    return len(actual)


def apply_patch(
    hunks: list[Hunk],
    base: str,
    hint_offset: int = 0,
    threshold: float = DEFAULT_THRESHOLD,
) -> tuple[str, list[bool]]:
    """Apply hunks to ``base``, tolerating drift.

    Each hunk is located with the text matcher near its expected offset
    (shifted by ``hint_offset``) and by whatever earlier hunks added or
    removed. A hunk that cannot be located is skipped and reported False.

    Returns:
        (patched text, one success flag per hunk)
    """
    text = base
    results: list[bool] = []
    delta = hint_offset

    for hunk in hunks:
        expected = max(0, hunk.offset + delta)
        pattern = hunk.pattern

        if not pattern:
            position = min(expected, len(text))
            text = text[:position] + hunk.inserted + text[position:]
            delta += len(hunk.inserted)
            results.append(True)
            continue

        match = locate(text, pattern, hint=expected, threshold=threshold)
        if match is None:
            results.append(False)
            continue

        span = text[match.start:match.end]
        if match.exact:
            new_span = hunk.replacement
        else:
            cut_start = _translate(pattern, span, len(hunk.context_before))
            cut_end = _translate(pattern, span, len(hunk.context_before) + len(hunk.deleted))
            cut_end = max(cut_start, cut_end)
            new_span = span[:cut_start] + hunk.inserted + span[cut_end:]

        text = text[:match.start] + new_span + text[match.end:]
        delta += (match.start - expected) + len(new_span) - len(span)
        results.append(True)

    return text, results
