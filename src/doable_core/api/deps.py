"""Request-scoped collaborators for the API routers.

Each is a FastAPI dependency so tests can swap it through
app.dependency_overrides.
"""
from typing import Any, Callable, Optional

from anthropic import AsyncAnthropic
from sqlalchemy.orm import Session, sessionmaker

from doable_chat.context import load_team_context
from doable_chat.handlers import ToolContext, Mailer
from doable_chat.store import TeamStore

from .. import models
from ..config import get_settings
from ..database import SessionLocal
from ..email import send_invitation_email


def get_session_factory() -> sessionmaker:
    """Session factory for work that outlives the request (streamed responses)."""
    return SessionLocal


def get_llm_client_factory() -> Callable[[str], Any]:
    """Build an Anthropic client for a given API key."""
    return lambda api_key: AsyncAnthropic(api_key=api_key)


def get_mailer() -> Mailer:
    return send_invitation_email


def build_tool_context(
    db: Session,
    team_id: str,
    user: Optional[models.User],
    mailer: Optional[Mailer],
    locale: str,
) -> ToolContext:
    """Assemble the per-turn tool context for a team and acting user."""
    settings = get_settings()
    return ToolContext(
        team_id=team_id,
        actor_id=user.id if user else None,
        actor_name=user.display_name if user else None,
        actor_email=user.email if user else None,
        team_context=load_team_context(db, team_id),
        store=TeamStore(db, team_id),
        mailer=mailer,
        app_url=settings.app_url,
        locale=locale,
        invitation_ttl_days=settings.invitation_ttl_days,
        default_project_color=settings.default_project_color,
    )
