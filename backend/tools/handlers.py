"""Tool handlers.

Each handler takes validated arguments and the ToolContext of the current
agent turn and returns a ToolResult.  Document writes go through
DocumentService.edit, which reads, transforms and saves under the document
lock, so handlers only describe the transformation.  Domain errors are left
to the dispatcher, which turns them into failure results.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from document.batch import apply_batch
from document.citations import remove_citations
from document.editor import (
    EditFailure,
    EditOperation,
    EditResult,
    EditType,
    RangeSelection,
    SearchSelection,
    SectionSelection,
    apply_edit,
)
from document.sections import document_title, find_section, outline
from document.service import DocumentService, SaveResult
from plans.service import PlanService
from tools.schemas import (
    BatchEditArgs,
    BatchEditResult,
    CitationsResult,
    CompletePlanArgs,
    EditContentArgs,
    EditContentResult,
    GetDocumentStructureArgs,
    InsertContentArgs,
    InsertResult,
    NoArgs,
    PlanHistoryResult,
    PlanResult,
    PlanStepsArgs,
    RemoveCitationsArgs,
    ReplaceContentArgs,
    ReplaceResult,
    StructureResult,
    ToolFailure,
    ToolResult,
    WriteResult,
    WriteToEditorArgs,
)

logger = logging.getLogger(__name__)

NO_DOCUMENT_MESSAGE = (
    "No document found in current chat. Please create a document first using writeToEditor."
)
NO_CHAT_MESSAGE = "No chat in context. Plans belong to a chat."
DEFAULT_TITLE = "Untitled Document"


@dataclass
class ToolContext:
    """Per-turn state shared by every tool call the agent makes in that turn."""
    user_id: str
    documents: DocumentService
    plans: PlanService
    chat_id: str | None = None
    document_id: str | None = None
    create_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def threshold(self) -> float:
        return self.documents.settings.fuzzy_match_threshold


def _saved_fields(saved: SaveResult) -> dict:
    return {
        "document_id": saved.document.id,
        "version_id": saved.version.id,
        "version_number": saved.version.version_number,
    }


async def _apply_single(
    ctx: ToolContext,
    op: EditOperation,
    description: str | None = None,
) -> tuple[EditResult, SaveResult | None]:
    """Run one edit operation against the context document and save it if it changed anything."""
    outcome: EditResult | None = None

    def transform(current: str):
        nonlocal outcome
        outcome = apply_edit(current, op, threshold=ctx.threshold)
        if isinstance(outcome, EditFailure) or outcome.content == current:
            return None
        return outcome.content, description or outcome.description

    saved = await ctx.documents.edit(ctx.document_id, ctx.user_id, transform)
    return outcome, saved


# ---------------------------------------------------------------------------
# Document tools
# ---------------------------------------------------------------------------

async def write_to_editor(args: WriteToEditorArgs, ctx: ToolContext) -> ToolResult:
    async with ctx.create_lock:
        if ctx.document_id is None:
            title = document_title(args.content) or args.title or DEFAULT_TITLE
            saved = await ctx.documents.create(
                ctx.user_id, title, args.content, chat_id=ctx.chat_id,
            )
            ctx.document_id = saved.document.id
            logger.info(f"writeToEditor created document {ctx.document_id} for chat {ctx.chat_id}")
            return WriteResult(
                action="create",
                title=title,
                message=f'Created document "{title}"',
                **_saved_fields(saved),
            )

    def transform(current: str):
        if args.action == "append":
            new = f"{current}\n\n{args.content}" if current else args.content
        elif args.action == "prepend":
            new = f"{args.content}\n\n{current}" if current else args.content
        else:
            new = args.content
        return new, f"Editor content ({args.action})"

    saved = await ctx.documents.edit(ctx.document_id, ctx.user_id, transform)
    return WriteResult(
        action=args.action,
        title=saved.document.title,
        message=f"Document updated ({args.action})",
        **_saved_fields(saved),
    )


async def replace_content(args: ReplaceContentArgs, ctx: ToolContext) -> ToolResult:
    if ctx.document_id is None:
        return ToolFailure(message=NO_DOCUMENT_MESSAGE)

    op = EditOperation(EditType.REPLACE, SearchSelection(args.old_text), args.new_text)
    outcome, saved = await _apply_single(ctx, op, args.description)
    if isinstance(outcome, EditFailure):
        return ToolFailure(message=f'Could not find text to replace: "{args.old_text[:100]}"')
    if saved is None:
        return ReplaceResult(message="Text already up to date", description=outcome.description)
    return ReplaceResult(
        message=f"Successfully replaced content. {outcome.description}",
        description=args.description or outcome.description,
        diff=saved.version.diff,
        **_saved_fields(saved),
    )


async def edit_content(args: EditContentArgs, ctx: ToolContext) -> ToolResult:
    if ctx.document_id is None:
        return ToolFailure(message=NO_DOCUMENT_MESSAGE)

    outcome, saved = await _apply_single(ctx, args.to_operation())
    if isinstance(outcome, EditFailure):
        return ToolFailure(message=outcome.reason)
    if saved is None:
        return EditContentResult(message="No changes were needed", description=outcome.description)
    return EditContentResult(
        message=outcome.description,
        description=outcome.description,
        diff=saved.version.diff,
        **_saved_fields(saved),
    )


async def batch_edit(args: BatchEditArgs, ctx: ToolContext) -> ToolResult:
    if ctx.document_id is None:
        return ToolFailure(message=NO_DOCUMENT_MESSAGE)

    ops = [spec.to_operation() for spec in args.edits]
    batch = None

    def transform(current: str):
        nonlocal batch
        batch = apply_batch(current, ops, threshold=ctx.threshold)
        if not batch.should_persist:
            return None
        return batch.content, args.summary

    saved = await ctx.documents.edit(ctx.document_id, ctx.user_id, transform)

    if not batch.applied:
        return BatchEditResult(
            success=False,
            summary=args.summary,
            failed_edits=batch.failed,
            message=f"No edits could be applied. {len(batch.failed)} edit(s) failed.",
        )

    message = f"Successfully applied {len(batch.applied)} edit(s)."
    if batch.failed:
        message += f" {len(batch.failed)} edit(s) failed."
    extra = _saved_fields(saved) if saved else {}
    return BatchEditResult(
        summary=args.summary,
        applied_edits=batch.applied,
        failed_edits=batch.failed,
        diff=saved.version.diff if saved else None,
        message=message,
        **extra,
    )


async def remove_citations_tool(args: RemoveCitationsArgs, ctx: ToolContext) -> ToolResult:
    if ctx.document_id is None:
        return ToolFailure(message=NO_DOCUMENT_MESSAGE)

    counts = {"citations": 0, "references": False}

    def transform(current: str):
        cleaned, count, references = remove_citations(current, args.remove_references_section)
        counts["citations"] = count
        counts["references"] = references
        if not count and not references:
            return None
        parts = [f"Removed {count} citation(s)"]
        if references:
            parts.append("references section")
        return cleaned, " and ".join(parts)

    saved = await ctx.documents.edit(ctx.document_id, ctx.user_id, transform)
    if saved is None:
        return CitationsResult(success=False, message="No citations found to remove")

    message = f"Removed {counts['citations']} citation(s)"
    if counts["references"]:
        message += " and the References section"
    return CitationsResult(
        citations_removed=counts["citations"],
        references_removed=counts["references"],
        message=message,
        **_saved_fields(saved),
    )


async def insert_content(args: InsertContentArgs, ctx: ToolContext) -> ToolResult:
    if ctx.document_id is None:
        return ToolFailure(message=NO_DOCUMENT_MESSAGE)
    if args.position == "at-line" and args.line_number is None:
        return ToolFailure(message="lineNumber is required when position='at-line'")
    if args.position != "at-line" and not (args.section_title or "").strip():
        return ToolFailure(message=f"sectionTitle is required when position='{args.position}'")

    failure: EditFailure | None = None
    line: int | None = args.line_number

    def transform(current: str):
        nonlocal failure, line
        if args.position == "at-line":
            selection = RangeSelection(args.line_number)
        else:
            section = find_section(current, args.section_title)
            if section is None:
                failure = EditFailure("section_not_found", f'Section "{args.section_title}" not found')
                return None
            if args.position == "before-section":
                selection = SectionSelection(args.section_title)
                line = section.line_start
            else:
                selection = RangeSelection(section.line_end)
                line = section.line_end

        outcome = apply_edit(current, EditOperation(EditType.INSERT, selection, args.content))
        if isinstance(outcome, EditFailure):
            failure = outcome
            return None
        return outcome.content, outcome.description

    saved = await ctx.documents.edit(ctx.document_id, ctx.user_id, transform)
    if failure is not None:
        return ToolFailure(message=failure.reason)
    return InsertResult(
        position=args.position,
        line=line,
        message=f"Inserted content ({args.position})",
        **_saved_fields(saved),
    )


async def get_document_structure(args: GetDocumentStructureArgs, ctx: ToolContext) -> ToolResult:
    if ctx.document_id is None:
        return ToolFailure(message=NO_DOCUMENT_MESSAGE)

    doc = await ctx.documents.get(ctx.document_id, ctx.user_id)
    if doc is None:
        return ToolFailure(message="Document not found")

    structure = outline(doc.content, include_content=args.include_content)
    return StructureResult(
        document_id=ctx.document_id,
        title=structure.title,
        sections=[s.to_dict() for s in structure.sections],
        word_count=structure.word_count,
        message=f"Document has {len(structure.sections)} section(s)",
    )


# ---------------------------------------------------------------------------
# Plan tools
# ---------------------------------------------------------------------------

async def plan_steps(args: PlanStepsArgs, ctx: ToolContext) -> ToolResult:
    if ctx.chat_id is None:
        return ToolFailure(message=NO_CHAT_MESSAGE)
    plan = await ctx.plans.upsert_plan(ctx.chat_id, ctx.user_id, args.steps)
    return PlanResult(plan=plan.to_dict(), message=f"Plan updated with {len(args.steps)} steps")


async def get_active_plan(args: NoArgs, ctx: ToolContext) -> ToolResult:
    if ctx.chat_id is None:
        return ToolFailure(message=NO_CHAT_MESSAGE)
    plan = await ctx.plans.get_active_plan(ctx.chat_id, ctx.user_id)
    if plan is None:
        return PlanResult(message="No active plan")
    return PlanResult(plan=plan.to_dict(), message=f"Active plan has {len(plan.steps)} steps")


async def complete_plan(args: CompletePlanArgs, ctx: ToolContext) -> ToolResult:
    if ctx.chat_id is None:
        return ToolFailure(message=NO_CHAT_MESSAGE)
    plan_id = args.plan_id
    if plan_id is None:
        active = await ctx.plans.get_active_plan(ctx.chat_id, ctx.user_id)
        if active is None:
            return ToolFailure(message="No active plan to complete")
        plan_id = active.plan.id
    if not await ctx.plans.complete_plan(plan_id, ctx.user_id):
        return ToolFailure(message=f"Plan {plan_id} not found")
    return PlanResult(message="Plan marked as completed")


async def get_plan_history(args: NoArgs, ctx: ToolContext) -> ToolResult:
    if ctx.chat_id is None:
        return ToolFailure(message=NO_CHAT_MESSAGE)
    plans = await ctx.plans.get_plan_history(ctx.chat_id, ctx.user_id)
    return PlanHistoryResult(plans=[p.to_dict() for p in plans], message=f"{len(plans)} plan(s)")
