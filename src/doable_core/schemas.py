"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ConfigDict

from .models import TeamRole, InvitationStatus


class ChatRequest(BaseModel):
    """Chat turn request. messages carries the full client-side history."""

    messages: list[dict[str, Any]] = Field(default_factory=list)
    api_key: Optional[str] = Field(None, description="Anthropic API key; falls back to server configuration")
    conversation_id: Optional[str] = Field(None, description="Existing conversation to continue")


class InvitationCreate(BaseModel):
    """Schema for inviting someone to a team."""

    email: str = Field(..., min_length=3, max_length=255)
    role: TeamRole = TeamRole.DEVELOPER


class InvitationResponse(BaseModel):
    """Schema for invitation response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    role: TeamRole
    status: InvitationStatus
    expires_at: datetime
    created_at: Optional[datetime] = None
    invite_url: Optional[str] = None
    email_sent: Optional[bool] = None
