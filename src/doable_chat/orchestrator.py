"""Chat turn orchestration: prompt, bounded tool-use loop, SSE events."""
import json
import logging
import re
from typing import Any, AsyncIterator, Callable, Optional

from . import formatters
from .context import TeamContext
from .dispatch import execute_tool
from .handlers import ToolContext
from .tools import to_anthropic_tools

logger = logging.getLogger("doable-chat.orchestrator")

MAX_TOOL_STEPS = 5
TITLE_MAX_LENGTH = 50
DEFAULT_TITLE = "New conversation"

TranscriptSink = Callable[[list[dict[str, Any]]], None]


class MessageConversionError(ValueError):
    """Client messages could not be turned into model messages."""


def build_system_prompt(team_context: TeamContext, actor_name: Optional[str] = None) -> str:
    """Embed the live team snapshot and the tool rules in the system prompt."""
    user_line = f"You are helping {actor_name}.\n" if actor_name else ""
    return f"""You are the Doable assistant. You manage issues, projects, invitations and members
of a team by calling tools. {user_line}
{formatters.format_team_context(team_context)}

Rules:
- Creating an issue requires title, project, workflow state and priority. If any of them
  is missing, ask the user for it. Never guess a priority.
- Refer to projects by name or key, to workflow states by name, to people by name.
- For 2 or more items use the batch tools (create_issues, update_issues, delete_issues,
  create_projects, invite_team_members).
- If a tool reports several matches, ask the user which one they mean.
- Issue titles are unique within the team (case-insensitive).
- Project keys are exactly 3 letters or digits.
- Report tool failures honestly and briefly."""


def _message_text(message: dict[str, Any]) -> str:
    if isinstance(message.get("content"), str):
        return message["content"]
    if isinstance(message.get("text"), str):
        return message["text"]
    parts = message.get("parts")
    if isinstance(parts, list):
        return "".join(
            part.get("text", "") for part in parts
            if isinstance(part, dict) and part.get("type") == "text"
        )
    if message.get("content") is None and message.get("text") is None and parts is None:
        return ""
    raise MessageConversionError(f"Unsupported content for {message.get('role')} message")


def convert_messages(messages: list[Any]) -> list[dict[str, str]]:
    """
    Convert client chat messages to Messages API format.

    Accepts {role, content}, {role, text} and {role, parts: [{type: "text", text}]}.
    System and blank messages are dropped, consecutive messages from the same
    role are merged, and leading assistant messages are dropped so the
    result starts with a user message.

    Raises:
        MessageConversionError: On malformed input
    """
    converted: list[dict[str, str]] = []
    for message in messages:
        if not isinstance(message, dict):
            raise MessageConversionError("Each message must be an object")
        role = message.get("role")
        if role == "system":
            continue
        if role not in ("user", "assistant"):
            raise MessageConversionError(f"Unsupported message role: {role}")
        text = _message_text(message).strip()
        if not text:
            continue
        if converted and converted[-1]["role"] == role:
            converted[-1]["content"] += "\n\n" + text
        else:
            converted.append({"role": role, "content": text})

    if not converted:
        raise MessageConversionError("No messages with content")
    # Greetings shown by the client before the user speaks
    while converted and converted[0]["role"] == "assistant":
        converted.pop(0)
    if not converted:
        raise MessageConversionError("The conversation needs at least one user message")
    return converted


def generate_conversation_title(text: Optional[str]) -> str:
    """First line of the text, whitespace collapsed, at most 50 characters."""
    first_line = (text or "").strip().split("\n")[0]
    title = re.sub(r"\s+", " ", first_line).strip()
    if not title:
        return DEFAULT_TITLE
    if len(title) > TITLE_MAX_LENGTH:
        return title[:TITLE_MAX_LENGTH].rstrip() + "..."
    return title


def sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


class ChatOrchestrator:
    """
    Run one chat turn against the Anthropic Messages API.

    The client only needs `messages.stream(...)` returning an async context
    manager with `text_stream` and `get_final_message()`, as AsyncAnthropic
    provides.
    """

    def __init__(
        self,
        client: Any,
        tool_ctx: ToolContext,
        model: str,
        max_tokens: int = 2048,
        max_steps: int = MAX_TOOL_STEPS,
        transcript_sink: Optional[TranscriptSink] = None,
    ):
        self.client = client
        self.tool_ctx = tool_ctx
        self.model = model
        self.max_tokens = max_tokens
        self.max_steps = max_steps
        self.transcript_sink = transcript_sink

    async def stream(self, history: list[dict[str, str]]) -> AsyncIterator[str]:
        """Yield SSE events for one turn. history comes from convert_messages."""
        system_prompt = build_system_prompt(self.tool_ctx.team_context, self.tool_ctx.actor_name)
        tools = to_anthropic_tools()
        messages: list[dict[str, Any]] = [dict(m) for m in history]
        assistant_text = ""
        tool_calls: list[dict[str, Any]] = []

        try:
            for step in range(self.max_steps):
                async with self.client.messages.stream(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    system=system_prompt,
                    messages=messages,
                    tools=tools,
                ) as stream:
                    async for text in stream.text_stream:
                        assistant_text += text
                        yield sse({"type": "text", "content": text})
                    final_message = await stream.get_final_message()

                tool_use_blocks = [block for block in final_message.content if block.type == "tool_use"]
                if not tool_use_blocks:
                    break

                tool_results = []
                for block in tool_use_blocks:
                    result = await execute_tool(block.name, block.input, self.tool_ctx)
                    payload = result.to_payload()
                    tool_calls.append({"tool_name": block.name, "arguments": block.input, "result": payload})
                    tool_results.append({
                        "type": "tool_result",
                        "tool_use_id": block.id,
                        "content": json.dumps(payload),
                        "is_error": not result.success,
                    })
                    yield sse({"type": "tool_result", "tool_name": block.name, "result": payload})

                messages.append({"role": "assistant", "content": final_message.content})
                messages.append({"role": "user", "content": tool_results})
            else:
                logger.info(f"Stopped after {self.max_steps} tool steps in team {self.tool_ctx.team_id}")
        except Exception as e:
            logger.error(f"Error in chat stream: {e}", exc_info=True)
            yield sse({"type": "error", "message": str(e) or "Chat request failed"})
            return

        self._persist(history, assistant_text, tool_calls)
        yield sse({"type": "done"})

    def _persist(self, history: list[dict[str, str]], assistant_text: str, tool_calls: list[dict[str, Any]]) -> None:
        if self.transcript_sink is None:
            return
        transcript: list[dict[str, Any]] = [dict(m) for m in history]
        if assistant_text or tool_calls:
            transcript.append({
                "role": "assistant",
                "content": assistant_text,
                "tool_calls": tool_calls or None,
            })
        try:
            self.transcript_sink(transcript)
        except Exception as e:
            logger.error(f"Failed to save chat transcript: {e}", exc_info=True)
