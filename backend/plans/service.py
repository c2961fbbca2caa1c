"""Agent plans: an ordered checklist the agent keeps per chat.

A chat has at most one active plan.  Updating a plan replaces its steps
wholesale (delete then reinsert) instead of diffing them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chats.service import ChatNotFoundError
from models import Chat, Plan, PlanStatus, PlanStep, StepStatus

logger = logging.getLogger(__name__)


class StepInput(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    status: StepStatus = StepStatus.PENDING


@dataclass
class PlanWithSteps:
    plan: Plan
    steps: list[PlanStep] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.plan.id,
            "chatId": self.plan.chat_id,
            "status": self.plan.status.value,
            "createdAt": self.plan.created_at.isoformat() if self.plan.created_at else None,
            "updatedAt": self.plan.updated_at.isoformat() if self.plan.updated_at else None,
            "steps": [
                {
                    "id": s.id,
                    "title": s.title,
                    "description": s.description,
                    "status": s.status.value,
                    "stepOrder": s.step_order,
                    "completedAt": s.completed_at.isoformat() if s.completed_at else None,
                }
                for s in self.steps
            ],
        }


class PlanService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _check_chat(self, session: AsyncSession, chat_id: str, user_id: str) -> None:
        result = await session.execute(
            select(Chat.id).where(Chat.id == chat_id, Chat.user_id == user_id)
        )
        if result.scalar_one_or_none() is None:
            raise ChatNotFoundError(f"Chat {chat_id} not found")

    async def _steps(self, session: AsyncSession, plan_id: str) -> list[PlanStep]:
        result = await session.execute(
            select(PlanStep).where(PlanStep.plan_id == plan_id).order_by(PlanStep.step_order)
        )
        return list(result.scalars().all())

    async def _active(self, session: AsyncSession, chat_id: str) -> Plan | None:
        result = await session.execute(
            select(Plan)
            .where(Plan.chat_id == chat_id, Plan.status == PlanStatus.ACTIVE)
            .order_by(Plan.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _add_steps(session: AsyncSession, plan_id: str, steps: list[StepInput]) -> None:
        now = datetime.now(timezone.utc)
        for order, step in enumerate(steps):
            session.add(PlanStep(
                plan_id=plan_id,
                title=step.title,
                description=step.description,
                status=step.status,
                step_order=order,
                completed_at=now if step.status == StepStatus.COMPLETED else None,
            ))

    async def get_active_plan(self, chat_id: str, user_id: str) -> PlanWithSteps | None:
        async with self._session_factory() as session:
            await self._check_chat(session, chat_id, user_id)
            plan = await self._active(session, chat_id)
            if plan is None:
                return None
            return PlanWithSteps(plan, await self._steps(session, plan.id))

    async def create_plan(self, chat_id: str, user_id: str, steps: list[StepInput]) -> PlanWithSteps:
        async with self._session_factory() as session:
            await self._check_chat(session, chat_id, user_id)
            plan = Plan(chat_id=chat_id, status=PlanStatus.ACTIVE)
            session.add(plan)
            await session.flush()
            self._add_steps(session, plan.id, steps)
            await session.commit()
            logger.info(f"Created plan {plan.id} for chat {chat_id} with {len(steps)} steps")
            return PlanWithSteps(plan, await self._steps(session, plan.id))

    async def update_plan(
        self,
        plan_id: str,
        user_id: str,
        steps: list[StepInput],
        status: PlanStatus | None = None,
    ) -> PlanWithSteps | None:
        """Replace a plan's steps (and optionally its status). None if the plan is unknown."""
        async with self._session_factory() as session:
            plan = await session.get(Plan, plan_id)
            if plan is None:
                return None
            await self._check_chat(session, plan.chat_id, user_id)
            if status is not None:
                plan.status = status
            plan.updated_at = datetime.now(timezone.utc)
            await session.execute(delete(PlanStep).where(PlanStep.plan_id == plan_id))
            self._add_steps(session, plan_id, steps)
            await session.commit()
            return PlanWithSteps(plan, await self._steps(session, plan_id))

    async def upsert_plan(self, chat_id: str, user_id: str, steps: list[StepInput]) -> PlanWithSteps:
        """Update the chat's active plan, or create one if there is none."""
        existing = await self.get_active_plan(chat_id, user_id)
        if existing is not None:
            updated = await self.update_plan(existing.plan.id, user_id, steps)
            if updated is not None:
                return updated
        return await self.create_plan(chat_id, user_id, steps)

    async def complete_plan(self, plan_id: str, user_id: str) -> bool:
        async with self._session_factory() as session:
            plan = await session.get(Plan, plan_id)
            if plan is None:
                return False
            await self._check_chat(session, plan.chat_id, user_id)
            plan.status = PlanStatus.COMPLETED
            plan.updated_at = datetime.now(timezone.utc)
            await session.commit()
        logger.info(f"Completed plan {plan_id}")
        return True

    async def get_plan_history(self, chat_id: str, user_id: str) -> list[PlanWithSteps]:
        """Every plan of a chat, newest first, each with its steps."""
        async with self._session_factory() as session:
            await self._check_chat(session, chat_id, user_id)
            result = await session.execute(
                select(Plan).where(Plan.chat_id == chat_id).order_by(Plan.created_at.desc())
            )
            return [PlanWithSteps(p, await self._steps(session, p.id)) for p in result.scalars().all()]
