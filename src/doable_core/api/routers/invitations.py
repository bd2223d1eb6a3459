"""Team invitation API endpoints.

Creating and resending go through the same handlers as the chat tools so
both surfaces apply identical conflict and expiry rules.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from doable_chat import handlers
from doable_chat.handlers import Mailer

from ... import crud, schemas, models
from ...auth import get_current_user, require_team_member
from ...database import get_db
from ...email import get_locale_from_request
from ..deps import get_mailer, build_tool_context

logger = logging.getLogger("doable-core.invitations")

router = APIRouter(tags=["invitations"])


@router.get("/{team_id}/invitations", response_model=list[schemas.InvitationResponse])
def list_invitations(
    team_id: str,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List pending, unexpired invitations, newest first."""
    require_team_member(db, team_id, user)
    return crud.get_pending_invitations(db, team_id)


@router.post("/{team_id}/invitations", response_model=schemas.InvitationResponse, status_code=201)
async def create_invitation(
    team_id: str,
    invitation: schemas.InvitationCreate,
    accept_language: Optional[str] = Header(None),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Invite someone to the team.

    - **email**: Address to invite
    - **role**: admin, developer or viewer (default: developer)

    Re-inviting an address whose invitation expired replaces it; a pending
    invitation or an existing membership is rejected.
    """
    require_team_member(db, team_id, user)
    ctx = build_tool_context(db, team_id, user, mailer, get_locale_from_request(accept_language))

    result = await handlers.handle_invite_team_member(
        {"email": invitation.email, "role": invitation.role.value}, ctx
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)

    logger.info(f"Created invitation for {invitation.email} in team {team_id}")
    return result.data


@router.post("/{team_id}/invitations/{invitation_id}/resend", response_model=schemas.InvitationResponse)
async def resend_invitation(
    team_id: str,
    invitation_id: str,
    accept_language: Optional[str] = Header(None),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Resend an invitation email and extend its expiry."""
    require_team_member(db, team_id, user)
    if crud.get_invitation(db, team_id, invitation_id) is None:
        raise HTTPException(status_code=404, detail="Invitation not found")

    ctx = build_tool_context(db, team_id, user, mailer, get_locale_from_request(accept_language))
    result = await handlers.handle_resend_invitation({"invitation_id": invitation_id}, ctx)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)

    logger.info(f"Resent invitation {invitation_id} in team {team_id}")
    return result.data
