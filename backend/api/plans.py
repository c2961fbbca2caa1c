"""Read-only access to a chat's agent plans."""

from fastapi import APIRouter, Depends

from api.deps import get_plan_service, to_http_error
from auth.jwt import get_current_user_id
from chats.service import ChatNotFoundError
from plans.service import PlanService

router = APIRouter(prefix="/api/plans", tags=["plans"])


@router.get("/{chat_id}/active")
async def get_active_plan(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    plans: PlanService = Depends(get_plan_service),
):
    """The chat's active plan with its steps, or null."""
    try:
        plan = await plans.get_active_plan(chat_id, user_id)
    except ChatNotFoundError as e:
        raise to_http_error(e)
    return plan.to_dict() if plan else None


@router.get("/{chat_id}/history")
async def get_plan_history(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    plans: PlanService = Depends(get_plan_service),
):
    try:
        history = await plans.get_plan_history(chat_id, user_id)
    except ChatNotFoundError as e:
        raise to_http_error(e)
    return [p.to_dict() for p in history]
