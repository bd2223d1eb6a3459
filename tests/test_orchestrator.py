"""Tests for message conversion, titles and the streaming tool loop."""
import json

import pytest

from doable_core import models
from doable_chat.orchestrator import (
    ChatOrchestrator,
    MessageConversionError,
    build_system_prompt,
    convert_messages,
    generate_conversation_title,
    sse,
)

from conftest import FakeAnthropic, text_step, tool_step


def parse_events(chunks):
    events = []
    for chunk in chunks:
        assert chunk.startswith("data: ") and chunk.endswith("\n\n")
        events.append(json.loads(chunk[len("data: "):]))
    return events


async def run_turn(orchestrator, history):
    return parse_events([chunk async for chunk in orchestrator.stream(history)])


class TestConvertMessages:
    """Client message shapes accepted by the chat endpoint."""

    def test_content_text_and_parts(self):
        converted = convert_messages(
            [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "text": "Hello!"},
                {"role": "user", "parts": [{"type": "text", "text": "Make "}, {"type": "image"}, {"type": "text", "text": "an issue"}]},
            ]
        )
        assert converted == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "Make an issue"},
        ]

    def test_system_and_blank_messages_are_dropped(self):
        converted = convert_messages(
            [
                {"role": "system", "content": "ignore me"},
                {"role": "user", "content": "   "},
                {"role": "user", "content": "Real question"},
            ]
        )
        assert converted == [{"role": "user", "content": "Real question"}]

    def test_consecutive_roles_are_merged(self):
        converted = convert_messages([{"role": "user", "content": "One"}, {"role": "user", "content": "Two"}])
        assert converted == [{"role": "user", "content": "One\n\nTwo"}]

    def test_leading_greeting_is_dropped(self):
        """A client greeting shown before the user speaks is not sent to the model."""
        converted = convert_messages(
            [
                {"role": "assistant", "content": "Hi! How can I help?"},
                {"role": "user", "content": "Create an issue"},
                {"role": "assistant", "content": "Which project?"},
            ]
        )
        assert converted == [
            {"role": "user", "content": "Create an issue"},
            {"role": "assistant", "content": "Which project?"},
        ]

    @pytest.mark.parametrize(
        "messages",
        [
            [],
            [{"role": "user", "content": ""}],
            [{"role": "tool", "content": "x"}],
            [{"role": "assistant", "content": "I start"}],
            ["just a string"],
            [{"role": "user", "content": 42}],
        ],
    )
    def test_invalid_input(self, messages):
        with pytest.raises(MessageConversionError):
            convert_messages(messages)


class TestConversationTitle:
    def test_short_text(self):
        assert generate_conversation_title("Create   a bug\nwith details") == "Create a bug"

    def test_long_text_is_truncated(self):
        title = generate_conversation_title("x" * 80)
        assert title == "x" * 50 + "..."

    def test_empty(self):
        assert generate_conversation_title("  ") == "New conversation"
        assert generate_conversation_title(None) == "New conversation"


class TestSystemPrompt:
    def test_includes_team_snapshot(self, ctx):
        prompt = build_system_prompt(ctx.team_context, "Alice Admin")
        assert "Acme" in prompt
        assert "Website (key: WEB" in prompt
        assert "In Progress" in prompt
        assert "Alice Admin" in prompt

    def test_sse_framing(self):
        assert sse({"type": "done"}) == 'data: {"type": "done"}\n\n'


class TestChatOrchestrator:
    """The bounded tool-use loop against a scripted client."""

    async def test_text_only_turn(self, ctx):
        client = FakeAnthropic([text_step("Hello there")])
        saved = []
        orchestrator = ChatOrchestrator(client, ctx, model="test-model", transcript_sink=saved.append)

        events = await run_turn(orchestrator, [{"role": "user", "content": "Hi"}])

        assert events == [{"type": "text", "content": "Hello there"}, {"type": "done"}]
        call = client.messages.calls[0]
        assert call["model"] == "test-model"
        assert call["max_tokens"] == 2048
        assert len(call["tools"]) == 23
        assert "Website (key: WEB" in call["system"]
        assert saved == [[{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello there", "tool_calls": None}]]

    async def test_tool_call_then_answer(self, db, seed, ctx):
        """The model creates an issue, sees the result, then answers."""
        arguments = {"title": "Ship v2", "project_id": "Website", "workflow_state_id": "Todo", "priority": "high"}
        client = FakeAnthropic(
            [tool_step("create_issue", arguments, text="Creating it. ", tool_id="toolu_1"), text_step("Done: #1.")]
        )
        saved = []
        orchestrator = ChatOrchestrator(client, ctx, model="m", transcript_sink=saved.append)

        events = await run_turn(orchestrator, [{"role": "user", "content": "Create Ship v2"}])

        assert [e["type"] for e in events] == ["text", "tool_result", "text", "done"]
        tool_event = events[1]
        assert tool_event["tool_name"] == "create_issue"
        assert tool_event["result"]["success"] is True
        assert tool_event["result"]["data"]["project_id"] == seed.website.id

        issue = db.query(models.Issue).one()
        assert issue.title == "Ship v2"
        assert issue.workflow_state_id == seed.todo.id

        # Second call carries the assistant tool use and the tool result
        second = client.messages.calls[1]["messages"]
        assert second[-2]["role"] == "assistant"
        tool_result = second[-1]["content"][0]
        assert tool_result["tool_use_id"] == "toolu_1"
        assert tool_result["is_error"] is False

        transcript = saved[0]
        assert transcript[-1]["content"] == "Creating it. Done: #1."
        assert transcript[-1]["tool_calls"][0]["tool_name"] == "create_issue"

    async def test_failed_tool_is_marked_as_error(self, db, seed, ctx):
        client = FakeAnthropic([tool_step("create_issue", {"title": "No priority"}), text_step("Which priority?")])
        orchestrator = ChatOrchestrator(client, ctx, model="m")

        events = await run_turn(orchestrator, [{"role": "user", "content": "Create something"}])

        assert events[0]["result"]["success"] is False
        assert client.messages.calls[1]["messages"][-1]["content"][0]["is_error"] is True
        assert db.query(models.Issue).count() == 0

    async def test_stops_after_max_steps(self, ctx):
        client = FakeAnthropic([tool_step("list_issues", {}) for _ in range(10)])
        orchestrator = ChatOrchestrator(client, ctx, model="m")

        events = await run_turn(orchestrator, [{"role": "user", "content": "Loop"}])

        assert len(client.messages.calls) == 5
        assert [e["type"] for e in events].count("tool_result") == 5
        assert events[-1] == {"type": "done"}

    async def test_model_error_yields_error_event(self, ctx):
        client = FakeAnthropic(error=RuntimeError("invalid x-api-key"))
        saved = []
        orchestrator = ChatOrchestrator(client, ctx, model="m", transcript_sink=saved.append)

        events = await run_turn(orchestrator, [{"role": "user", "content": "Hi"}])

        assert events == [{"type": "error", "message": "invalid x-api-key"}]
        assert saved == []

    async def test_transcript_failure_is_tolerated(self, ctx):
        def broken_sink(transcript):
            raise RuntimeError("disk full")

        orchestrator = ChatOrchestrator(FakeAnthropic([text_step("Hi")]), ctx, model="m", transcript_sink=broken_sink)

        events = await run_turn(orchestrator, [{"role": "user", "content": "Hi"}])

        assert events[-1] == {"type": "done"}
