"""Tests for /api/plans endpoints."""

from plans.service import StepInput
from models import StepStatus


async def _chat_with_plan(chat_service, plan_service, chat_id="chat-1"):
    await chat_service.save_chat(chat_id, "user-alice", [{"role": "user", "content": "Plan my essay"}])
    return await plan_service.create_plan(chat_id, "user-alice", [
        StepInput(title="Research"),
        StepInput(title="Outline", status=StepStatus.IN_PROGRESS),
    ])


class TestActivePlan:
    async def test_returns_plan_with_ordered_steps(self, test_client, auth_headers, chat_service, plan_service):
        created = await _chat_with_plan(chat_service, plan_service)
        resp = await test_client.get("/api/plans/chat-1/active", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == created.plan.id
        assert body["status"] == "active"
        assert [(s["title"], s["status"], s["stepOrder"]) for s in body["steps"]] == [
            ("Research", "pending", 0),
            ("Outline", "in_progress", 1),
        ]

    async def test_null_when_no_active_plan(self, test_client, auth_headers, chat_service, plan_service):
        created = await _chat_with_plan(chat_service, plan_service)
        await plan_service.complete_plan(created.plan.id, "user-alice")
        resp = await test_client.get("/api/plans/chat-1/active", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json() is None

    async def test_foreign_chat_is_404(self, test_client, other_auth_headers, chat_service, plan_service):
        await _chat_with_plan(chat_service, plan_service)
        resp = await test_client.get("/api/plans/chat-1/active", headers=other_auth_headers)
        assert resp.status_code == 404


class TestPlanHistory:
    async def test_history_newest_first(self, test_client, auth_headers, chat_service, plan_service):
        first = await _chat_with_plan(chat_service, plan_service)
        await plan_service.complete_plan(first.plan.id, "user-alice")
        second = await plan_service.create_plan("chat-1", "user-alice", [StepInput(title="Revise")])

        resp = await test_client.get("/api/plans/chat-1/history", headers=auth_headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json()] == [second.plan.id, first.plan.id]
        assert [p["status"] for p in resp.json()] == ["active", "completed"]

    async def test_unknown_chat_is_404(self, test_client, auth_headers):
        resp = await test_client.get("/api/plans/missing/history", headers=auth_headers)
        assert resp.status_code == 404
