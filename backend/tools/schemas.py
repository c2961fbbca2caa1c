"""Tool argument and result models.

Arguments arrive camelCase from the agent; results go back camelCase too.
Every result carries a ``kind`` tag so callers can tell them apart.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from document.editor import EditOperation, EditType
from plans.service import StepInput


class ToolArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ToolResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str = ""

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------

SelectionMode = Literal["search", "section", "range"]


class EditSpec(ToolArgs):
    type: EditType
    selection_mode: SelectionMode
    search_text: str | None = None
    section_title: str | None = None
    start_line: int | None = None
    end_line: int | None = None
    new_content: str | None = None

    def to_operation(self) -> EditOperation:
        return EditOperation.from_fields(
            self.type.value,
            self.selection_mode,
            search_text=self.search_text,
            section_title=self.section_title,
            start_line=self.start_line,
            end_line=self.end_line,
            new_content=self.new_content,
        )


class WriteToEditorArgs(ToolArgs):
    action: Literal["set", "append", "prepend"] = "set"
    content: str
    title: str | None = None


class ReplaceContentArgs(ToolArgs):
    old_text: str = Field(min_length=1)
    new_text: str
    description: str | None = None


class EditContentArgs(ToolArgs):
    selection_mode: SelectionMode
    search_text: str | None = None
    section_title: str | None = None
    start_line: int | None = None
    end_line: int | None = None
    operation: Literal["replace", "delete"] = "replace"
    new_content: str | None = None

    def to_operation(self) -> EditOperation:
        return EditOperation.from_fields(
            self.operation,
            self.selection_mode,
            search_text=self.search_text,
            section_title=self.section_title,
            start_line=self.start_line,
            end_line=self.end_line,
            new_content=self.new_content,
        )


class BatchEditArgs(ToolArgs):
    edits: list[EditSpec] = Field(min_length=1)
    summary: str


class RemoveCitationsArgs(ToolArgs):
    remove_references_section: bool = True


class InsertContentArgs(ToolArgs):
    position: Literal["before-section", "after-section", "at-line"]
    section_title: str | None = None
    line_number: int | None = None
    content: str


class GetDocumentStructureArgs(ToolArgs):
    include_content: bool = False


class PlanStepsArgs(ToolArgs):
    steps: list[StepInput]


class CompletePlanArgs(ToolArgs):
    plan_id: str | None = None


class NoArgs(ToolArgs):
    pass


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ToolFailure(ToolResult):
    kind: Literal["failure"] = "failure"
    success: bool = False


class DocumentResult(ToolResult):
    """Fields shared by every tool that writes a document version."""
    document_id: str | None = None
    version_id: str | None = None
    version_number: int | None = None


class WriteResult(DocumentResult):
    kind: Literal["write"] = "write"
    action: Literal["create", "set", "append", "prepend"]
    title: str | None = None


class ReplaceResult(DocumentResult):
    kind: Literal["replace"] = "replace"
    description: str | None = None
    diff: str | None = None


class EditContentResult(DocumentResult):
    kind: Literal["edit"] = "edit"
    description: str | None = None
    diff: str | None = None


class BatchEditResult(DocumentResult):
    kind: Literal["batch"] = "batch"
    summary: str
    applied_edits: list[str] = Field(default_factory=list)
    failed_edits: list[str] = Field(default_factory=list)
    diff: str | None = None


class CitationsResult(DocumentResult):
    kind: Literal["citations"] = "citations"
    citations_removed: int = 0
    references_removed: bool = False


class InsertResult(DocumentResult):
    kind: Literal["insert"] = "insert"
    position: str
    line: int | None = None


class StructureResult(ToolResult):
    kind: Literal["structure"] = "structure"
    document_id: str
    title: str | None = None
    sections: list[dict] = Field(default_factory=list)
    word_count: int = 0


class PlanResult(ToolResult):
    kind: Literal["plan"] = "plan"
    plan: dict | None = None


class PlanHistoryResult(ToolResult):
    kind: Literal["plan_history"] = "plan_history"
    plans: list[dict] = Field(default_factory=list)
