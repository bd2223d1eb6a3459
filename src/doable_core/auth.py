"""Acting-user resolution.

Authentication happens in front of this service; the authenticated user id
arrives in the X-User-Id header.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from . import crud, models
from .database import get_db

logger = logging.getLogger("doable-core.auth")


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Resolve the acting user.

    Raises:
        HTTPException: 401 if the header is missing or names no user
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = crud.get_user(db, x_user_id)
    if user is None:
        logger.warning(f"Request with unknown user id {x_user_id}")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_team_member(db: Session, team_id: str, user: models.User) -> models.TeamMember:
    """
    Ensure the user belongs to the team.

    Raises:
        HTTPException: 404 if the team does not exist, 403 if not a member
    """
    if crud.get_team(db, team_id) is None:
        raise HTTPException(status_code=404, detail="Team not found")
    member = crud.get_team_member_by_user(db, team_id, user.id)
    if member is None:
        raise HTTPException(status_code=403, detail="Not a member of this team")
    return member
