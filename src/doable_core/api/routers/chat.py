"""Chat API endpoint: streams the assistant's reply as server-sent events."""
import logging
from typing import Any, AsyncGenerator, Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, sessionmaker

from doable_chat.handlers import Mailer
from doable_chat.orchestrator import (
    ChatOrchestrator,
    MessageConversionError,
    convert_messages,
    generate_conversation_title,
    sse,
)

from ... import crud, schemas, models
from ...auth import get_current_user, require_team_member
from ...config import get_settings
from ...database import get_db
from ...email import get_locale_from_request
from ..deps import get_session_factory, get_llm_client_factory, get_mailer, build_tool_context

logger = logging.getLogger("doable-core.chat")

router = APIRouter(tags=["chat"])


@router.post("/{team_id}/chat")
async def chat(
    team_id: str,
    request: schemas.ChatRequest,
    accept_language: Optional[str] = Header(None),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
    client_factory: Callable[[str], Any] = Depends(get_llm_client_factory),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Run one chat turn for a team.

    - **messages**: Full conversation history from the client
    - **api_key**: Optional Anthropic API key (server key used otherwise)
    - **conversation_id**: Conversation to continue; a new one is created if omitted

    The response is `text/event-stream` with `text`, `tool_result`, `done`
    and `error` events; the conversation id is in the `X-Conversation-Id` header.
    """
    settings = get_settings()

    if not request.messages:
        raise HTTPException(status_code=400, detail="Messages are required")

    api_key = request.api_key or settings.anthropic_api_key
    if not api_key:
        raise HTTPException(status_code=400, detail="API key is required")

    require_team_member(db, team_id, user)

    try:
        history = convert_messages(request.messages)
    except MessageConversionError as e:
        logger.warning(f"Rejected chat messages for team {team_id}: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid message format: {e}")

    if request.conversation_id:
        conversation = crud.get_conversation(db, request.conversation_id)
        if conversation is None or conversation.user_id != user.id or conversation.team_id != team_id:
            raise HTTPException(status_code=404, detail="Conversation not found")
    else:
        conversation = crud.create_conversation(
            db, team_id, user.id, title=generate_conversation_title(history[0]["content"])
        )
    conversation_id = conversation.id

    user_id = user.id
    locale = get_locale_from_request(accept_language)
    client = client_factory(api_key)

    async def generate() -> AsyncGenerator[str, None]:
        """Generate streaming chat responses with a session of their own."""
        stream_db = session_factory()
        try:
            try:
                acting_user = crud.get_user(stream_db, user_id)
                tool_ctx = build_tool_context(stream_db, team_id, acting_user, mailer, locale)
            except Exception as e:
                logger.error(f"Failed to load team context for {team_id}: {e}", exc_info=True)
                yield sse({"type": "error", "message": "Failed to load team data"})
                return

            def save_transcript(transcript: list[dict[str, Any]]) -> None:
                crud.save_chat_messages(stream_db, conversation_id, transcript)
                stored = crud.get_conversation(stream_db, conversation_id)
                if stored is not None and not stored.title:
                    first_user = next((m["content"] for m in transcript if m["role"] == "user"), "")
                    crud.update_conversation_title(stream_db, conversation_id, generate_conversation_title(first_user))

            orchestrator = ChatOrchestrator(
                client,
                tool_ctx,
                model=settings.chat_model,
                max_tokens=settings.chat_max_tokens,
                max_steps=settings.chat_max_steps,
                transcript_sink=save_transcript,
            )
            logger.info(f"Chat turn for team {team_id}, conversation {conversation_id}, {len(history)} messages")
            async for event in orchestrator.stream(history):
                yield event
        finally:
            stream_db.close()

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Conversation-Id": conversation_id,
        },
    )
