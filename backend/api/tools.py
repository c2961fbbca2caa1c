"""Tool execution endpoints.

POST /api/tools/{tool_name} runs one agent tool on behalf of the
authenticated user.  The agent runtime calls this once per tool call; the
response body is the tool result exactly as the agent should see it.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_document_service, get_plan_service
from auth.jwt import get_current_user_id
from document.service import DocumentService
from plans.service import PlanService
from tools.definitions import TOOL_DEFINITIONS
from tools.dispatch import execute_tool_call
from tools.handlers import ToolContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tools", tags=["tools"])


class ToolCallRequest(BaseModel):
    arguments: dict = Field(default_factory=dict)
    chat_id: str | None = None
    document_id: str | None = None


@router.get("")
async def list_tools(user_id: str = Depends(get_current_user_id)):
    """Function-calling definitions for every tool."""
    return TOOL_DEFINITIONS


@router.post("/{tool_name}")
async def call_tool(
    tool_name: str,
    body: ToolCallRequest,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
    plans: PlanService = Depends(get_plan_service),
):
    """Execute a tool. Failures are reported in the body with ``success: false``."""
    context = ToolContext(
        user_id=user_id,
        documents=documents,
        plans=plans,
        chat_id=body.chat_id,
        document_id=body.document_id,
    )
    result = await execute_tool_call(tool_name, body.arguments, context)
    # A create hands the new id back so the caller can pass it next time.
    if context.document_id and not result.get("documentId"):
        result["documentId"] = context.document_id
    return result
