"""Route agent tool calls to their handlers.

Tool calls never raise: unknown tools, malformed arguments, missing
documents and storage failures all come back as ``{"success": false,
"message": ...}`` so the agent can read the problem and try again.
"""

import asyncio
import json
import logging

from pydantic import ValidationError

from chats.service import ChatNotFoundError
from document.exceptions import DocumentError
from storage.blob import StorageError
from tools import handlers
from tools.handlers import ToolContext
from tools.schemas import (
    BatchEditArgs,
    CompletePlanArgs,
    EditContentArgs,
    GetDocumentStructureArgs,
    InsertContentArgs,
    NoArgs,
    PlanStepsArgs,
    RemoveCitationsArgs,
    ReplaceContentArgs,
    ToolFailure,
    WriteToEditorArgs,
)

logger = logging.getLogger(__name__)

# name -> (argument model, handler)
TOOL_HANDLERS = {
    "writeToEditor": (WriteToEditorArgs, handlers.write_to_editor),
    "replaceContent": (ReplaceContentArgs, handlers.replace_content),
    "editContent": (EditContentArgs, handlers.edit_content),
    "batchEdit": (BatchEditArgs, handlers.batch_edit),
    "removeCitations": (RemoveCitationsArgs, handlers.remove_citations_tool),
    "insertContent": (InsertContentArgs, handlers.insert_content),
    "getDocumentStructure": (GetDocumentStructureArgs, handlers.get_document_structure),
    "planSteps": (PlanStepsArgs, handlers.plan_steps),
    "getActivePlan": (NoArgs, handlers.get_active_plan),
    "completePlan": (CompletePlanArgs, handlers.complete_plan),
    "getPlanHistory": (NoArgs, handlers.get_plan_history),
}


def _validation_message(name: str, error: ValidationError) -> str:
    problems = []
    for err in error.errors():
        where = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        problems.append(f"{where}: {err.get('msg')}")
    return f"Invalid arguments for {name}: " + "; ".join(problems)


async def execute_tool_call(name: str, arguments: str | dict | None, context: ToolContext) -> dict:
    """Execute a single tool call and return its wire-format result."""
    entry = TOOL_HANDLERS.get(name)
    if entry is None:
        logger.warning(f"Unknown tool requested: {name!r}")
        return ToolFailure(message=f"Unknown tool: {name}").to_wire()

    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as e:
            return ToolFailure(message=f"Arguments for {name} are not valid JSON: {e.msg}").to_wire()
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        return ToolFailure(message=f"Arguments for {name} must be a JSON object").to_wire()

    args_model, handler = entry
    try:
        args = args_model.model_validate(arguments)
    except ValidationError as e:
        return ToolFailure(message=_validation_message(name, e)).to_wire()

    logger.info(f"Tool {name} invoked for user {context.user_id} (document={context.document_id})")
    try:
        result = await handler(args, context)
    except (DocumentError, ChatNotFoundError) as e:
        logger.warning(f"Tool {name} failed: {e}")
        result = ToolFailure(message=str(e))
    except StorageError as e:
        logger.error(f"Tool {name} storage failure: {e}", exc_info=True)
        result = ToolFailure(message=f"Storage is unavailable, try again: {e}")
    except Exception as e:
        logger.error(f"Tool {name} crashed: {e}", exc_info=True)
        result = ToolFailure(message=f"Failed to run {name}: {e}")
    return result.to_wire()


async def execute_tool_calls(tool_calls: list[dict], context: ToolContext) -> list[dict]:
    """Run one turn's tool calls concurrently.

    ``tool_calls`` are in chat-completions format (``{"id", "function":
    {"name", "arguments"}}``); the return value is the matching list of
    ``role="tool"`` messages, in the same order.
    """
    results = await asyncio.gather(*(
        execute_tool_call(call["function"]["name"], call["function"].get("arguments"), context)
        for call in tool_calls
    ))
    return [
        {
            "role": "tool",
            "tool_call_id": call.get("id"),
            "content": json.dumps(result),
        }
        for call, result in zip(tool_calls, results)
    ]
