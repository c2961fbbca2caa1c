"""Apply a list of edit operations in one pass."""

import logging
from dataclasses import dataclass, field

from document.editor import EditFailure, EditOperation, apply_edit
from document.matcher import DEFAULT_THRESHOLD

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    content: str
    applied: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    changed: bool = False

    @property
    def should_persist(self) -> bool:
        """True when exactly one new version should be written for this batch."""
        return bool(self.applied) and self.changed


def apply_batch(
    content: str,
    ops: list[EditOperation],
    threshold: float = DEFAULT_THRESHOLD,
) -> BatchResult:
    """Apply ``ops`` in order, each against the output of the previous one.

    A failing operation is recorded as ``"Edit <n>: <reason>"`` (1-based) and
    skipped; the rest still run.
    """
    current = content
    result = BatchResult(content=content)

    for n, op in enumerate(ops, start=1):
        outcome = apply_edit(current, op, threshold=threshold)
        if isinstance(outcome, EditFailure):
            result.failed.append(f"Edit {n}: {outcome.reason}")
            continue
        current = outcome.content
        result.applied.append(op.describe())

    result.content = current
    result.changed = current != content
    if result.failed:
        logger.info("Batch: %d applied, %d failed", len(result.applied), len(result.failed))
    return result
