"""Tests for the agent tool layer (tools.dispatch + tools.handlers)."""

import json
from unittest.mock import AsyncMock, patch

from storage.blob import StorageError
from tools.definitions import TOOL_DEFINITIONS
from tools.dispatch import TOOL_HANDLERS, execute_tool_call, execute_tool_calls
from tools.handlers import NO_CHAT_MESSAGE, NO_DOCUMENT_MESSAGE

USER = "user-alice"

TRIP = (
    "# Trip Notes\n\n"
    "We visited Rome [1].\n\n"
    "## Food\n"
    "Pasta was great.\n\n"
    "## References\n"
    "1. Guide"
)


async def call(ctx, name, **arguments):
    return await execute_tool_call(name, json.dumps(arguments), ctx)


async def _content(ctx):
    return (await ctx.documents.get(ctx.document_id, ctx.user_id)).content


def _tool_call(call_id, name, **arguments):
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": json.dumps(arguments)}}


class TestRegistry:
    def test_every_definition_has_a_handler(self):
        names = {d["function"]["name"] for d in TOOL_DEFINITIONS}
        assert names == set(TOOL_HANDLERS)


class TestDocumentScenario:
    async def test_full_editing_session(self, tool_context):
        ctx = tool_context

        result = await call(ctx, "writeToEditor", content=TRIP)
        assert result["success"] is True
        assert result["kind"] == "write"
        assert result["action"] == "create"
        assert result["title"] == "Trip Notes"
        assert result["versionNumber"] == 1
        assert ctx.document_id == result["documentId"]

        result = await call(ctx, "replaceContent", oldText="Pasta was great.", newText="Pasta was superb.")
        assert result["success"] is True
        assert result["versionNumber"] == 2
        assert "superb." in result["diff"]

        result = await call(ctx, "batchEdit", summary="Tighten wording", edits=[
            {"type": "replace", "selectionMode": "search", "searchText": "We visited Rome", "newContent": "We toured Rome"},
            {"type": "delete", "selectionMode": "section", "sectionTitle": "Weather"},
        ])
        assert result["success"] is True
        assert result["versionNumber"] == 3
        assert len(result["appliedEdits"]) == 1
        assert result["failedEdits"] == ['Edit 2: Section "Weather" not found']

        result = await call(ctx, "removeCitations")
        assert result["success"] is True
        assert result["citationsRemoved"] == 1
        assert result["referencesRemoved"] is True
        assert await _content(ctx) == "# Trip Notes\n\nWe toured Rome.\n\n## Food\nPasta was superb."

        result = await call(ctx, "insertContent", position="after-section", sectionTitle="Food",
                            content="## Museums\nVatican.")
        assert result["success"] is True
        assert result["line"] == 6
        assert result["versionNumber"] == 5

        result = await call(ctx, "getDocumentStructure")
        assert result["title"] == "Trip Notes"
        assert [s["title"] for s in result["sections"]] == ["Trip Notes", "Food", "Museums"]

        assert await _content(ctx) == (
            "# Trip Notes\n\nWe toured Rome.\n\n## Food\nPasta was superb.\n## Museums\nVatican."
        )
        versions = await ctx.documents.list_versions(ctx.document_id, USER)
        assert [v.version_number for v in versions] == [5, 4, 3, 2, 1]

    async def test_write_to_editor_append_and_prepend(self, tool_context):
        await call(tool_context, "writeToEditor", content="middle", title="Notes")
        await call(tool_context, "writeToEditor", action="append", content="end")
        result = await call(tool_context, "writeToEditor", action="prepend", content="start")
        assert result["action"] == "prepend"
        assert result["title"] == "Notes"
        assert await _content(tool_context) == "start\n\nmiddle\n\nend"

    async def test_write_to_editor_default_title(self, tool_context):
        result = await call(tool_context, "writeToEditor", content="no heading here")
        assert result["title"] == "Untitled Document"

    async def test_edit_content_section_replace(self, tool_context):
        await call(tool_context, "writeToEditor", content=TRIP)
        result = await call(tool_context, "editContent", selectionMode="section", sectionTitle="Food",
                            newContent="## Food\nGelato.\n")
        assert result["success"] is True
        assert result["kind"] == "edit"
        assert "## Food\nGelato.\n\n## References" in await _content(tool_context)

    async def test_edit_content_failure_is_reported(self, tool_context):
        await call(tool_context, "writeToEditor", content=TRIP)
        result = await call(tool_context, "editContent", selectionMode="range", startLine=4, endLine=1,
                            operation="delete")
        assert result["success"] is False
        assert result["message"] == "Invalid line range 4-1"


class TestDocumentFailures:
    async def test_no_document_in_context(self, tool_context):
        for name, args in [
            ("replaceContent", {"oldText": "a", "newText": "b"}),
            ("removeCitations", {}),
            ("getDocumentStructure", {}),
            ("batchEdit", {"summary": "s", "edits": [{"type": "delete", "selectionMode": "range",
                                                       "startLine": 0, "endLine": 1}]}),
        ]:
            result = await call(tool_context, name, **args)
            assert result == {"kind": "failure", "success": False, "message": NO_DOCUMENT_MESSAGE}

    async def test_replace_text_not_found(self, tool_context):
        await call(tool_context, "writeToEditor", content=TRIP)
        result = await call(tool_context, "replaceContent", oldText="zzzz qqqq xxxx", newText="b")
        assert result["success"] is False
        assert result["message"] == 'Could not find text to replace: "zzzz qqqq xxxx"'

    async def test_batch_with_nothing_applied_writes_no_version(self, tool_context):
        await call(tool_context, "writeToEditor", content=TRIP)
        result = await call(tool_context, "batchEdit", summary="noop", edits=[
            {"type": "delete", "selectionMode": "section", "sectionTitle": "Nope"},
        ])
        assert result["success"] is False
        assert result["message"].startswith("No edits could be applied")
        assert len(await tool_context.documents.list_versions(tool_context.document_id, USER)) == 1

    async def test_remove_citations_counts_body_markers_only(self, tool_context):
        await call(tool_context, "writeToEditor",
                   content="Sales grew [1] [2] last year.\n## References\n[1] Annual report\n[2] Press release")
        result = await call(tool_context, "removeCitations", removeReferencesSection=True)
        assert result["success"] is True
        assert result["citationsRemoved"] == 2
        assert result["referencesRemoved"] is True
        assert result["versionNumber"] == 2
        assert await _content(tool_context) == "Sales grew last year."

    async def test_remove_citations_when_clean(self, tool_context):
        await call(tool_context, "writeToEditor", content="Nothing cited here.")
        result = await call(tool_context, "removeCitations")
        assert result["success"] is False
        assert result["message"] == "No citations found to remove"

    async def test_insert_requires_line_or_section(self, tool_context):
        await call(tool_context, "writeToEditor", content=TRIP)
        result = await call(tool_context, "insertContent", position="at-line", content="x")
        assert result["message"] == "lineNumber is required when position='at-line'"
        result = await call(tool_context, "insertContent", position="before-section", content="x")
        assert result["message"] == "sectionTitle is required when position='before-section'"
        result = await call(tool_context, "insertContent", position="after-section",
                            sectionTitle="Weather", content="x")
        assert result["message"] == 'Section "Weather" not found'

    async def test_foreign_document_is_not_found(self, tool_context, document_service):
        other = await document_service.create("user-bob", "Theirs", "secret")
        tool_context.document_id = other.document.id
        result = await call(tool_context, "writeToEditor", content="mine now")
        assert result["success"] is False
        assert "not found" in result["message"]
        assert (await document_service.get(other.document.id, "user-bob")).content == "secret"

    async def test_storage_failure_is_reported(self, tool_context, blob_store):
        await call(tool_context, "writeToEditor", content=TRIP)
        with patch.object(blob_store, "write", AsyncMock(side_effect=StorageError("bucket gone"))):
            result = await call(tool_context, "writeToEditor", content="new")
        assert result["success"] is False
        assert result["message"].startswith("Storage is unavailable")


class TestDispatch:
    async def test_unknown_tool(self, tool_context):
        result = await execute_tool_call("launchRocket", "{}", tool_context)
        assert result["success"] is False
        assert result["message"] == "Unknown tool: launchRocket"

    async def test_invalid_json(self, tool_context):
        result = await execute_tool_call("writeToEditor", "{not json", tool_context)
        assert result["success"] is False
        assert "not valid JSON" in result["message"]

    async def test_arguments_must_be_an_object(self, tool_context):
        result = await execute_tool_call("writeToEditor", "[1, 2]", tool_context)
        assert result["message"] == "Arguments for writeToEditor must be a JSON object"

    async def test_validation_error(self, tool_context):
        result = await execute_tool_call("replaceContent", {"newText": "b"}, tool_context)
        assert result["success"] is False
        assert result["message"].startswith("Invalid arguments for replaceContent")

    async def test_empty_arguments_use_defaults(self, tool_context):
        result = await execute_tool_call("getDocumentStructure", "", tool_context)
        assert result["message"] == NO_DOCUMENT_MESSAGE

    async def test_handler_crash_is_reported(self, tool_context):
        with patch.dict(TOOL_HANDLERS, {"writeToEditor": (TOOL_HANDLERS["writeToEditor"][0],
                                                          AsyncMock(side_effect=RuntimeError("boom")))}):
            result = await call(tool_context, "writeToEditor", content="x")
        assert result["success"] is False
        assert result["message"] == "Failed to run writeToEditor: boom"


class TestConcurrentCalls:
    async def test_concurrent_writes_create_one_document(self, tool_context, document_service):
        messages = await execute_tool_calls([
            _tool_call("call-1", "writeToEditor", content="# One"),
            _tool_call("call-2", "writeToEditor", action="append", content="two"),
        ], tool_context)

        assert [m["tool_call_id"] for m in messages] == ["call-1", "call-2"]
        assert all(m["role"] == "tool" for m in messages)
        results = [json.loads(m["content"]) for m in messages]
        assert all(r["success"] for r in results)
        assert len(await document_service.list_documents(USER)) == 1
        assert sorted(r["versionNumber"] for r in results) == [1, 2]

    async def test_concurrent_replacements_all_land(self, tool_context):
        await call(tool_context, "writeToEditor", content="alpha beta gamma")
        messages = await execute_tool_calls([
            _tool_call("a", "replaceContent", oldText="alpha", newText="ALPHA"),
            _tool_call("b", "replaceContent", oldText="beta", newText="BETA"),
            _tool_call("c", "replaceContent", oldText="gamma", newText="GAMMA"),
        ], tool_context)

        results = [json.loads(m["content"]) for m in messages]
        assert sorted(r["versionNumber"] for r in results) == [2, 3, 4]
        assert await _content(tool_context) == "ALPHA BETA GAMMA"


class TestPlanTools:
    async def test_plan_lifecycle(self, tool_context, chat_service):
        await chat_service.save_chat("chat-1", USER, [{"role": "user", "content": "Write an essay"}])
        tool_context.chat_id = "chat-1"

        result = await call(tool_context, "planSteps", steps=[
            {"title": "Outline"},
            {"title": "Draft", "status": "in_progress"},
        ])
        assert result["success"] is True
        assert [s["title"] for s in result["plan"]["steps"]] == ["Outline", "Draft"]

        result = await call(tool_context, "planSteps", steps=[
            {"title": "Outline", "status": "completed"},
            {"title": "Draft", "status": "completed"},
            {"title": "Polish"},
        ])
        plan_id = result["plan"]["id"]
        assert len(result["plan"]["steps"]) == 3
        assert result["plan"]["steps"][0]["completedAt"] is not None

        result = await call(tool_context, "getActivePlan")
        assert result["plan"]["id"] == plan_id

        result = await call(tool_context, "completePlan")
        assert result["success"] is True

        result = await call(tool_context, "getActivePlan")
        assert result["plan"] is None
        assert result["message"] == "No active plan"

        result = await call(tool_context, "getPlanHistory")
        assert [p["status"] for p in result["plans"]] == ["completed"]

    async def test_plan_tools_need_a_chat(self, tool_context):
        result = await call(tool_context, "planSteps", steps=[{"title": "x"}])
        assert result["message"] == NO_CHAT_MESSAGE

    async def test_unknown_chat(self, tool_context):
        tool_context.chat_id = "missing-chat"
        result = await call(tool_context, "getActivePlan")
        assert result["success"] is False
        assert result["message"] == "Chat missing-chat not found"

    async def test_complete_without_active_plan(self, tool_context, chat_service):
        await chat_service.save_chat("chat-2", USER, [])
        tool_context.chat_id = "chat-2"
        result = await call(tool_context, "completePlan")
        assert result["message"] == "No active plan to complete"
