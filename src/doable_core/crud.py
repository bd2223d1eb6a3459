"""CRUD operations for teams, projects, issues, invitations and chat history.

Every query is scoped by team_id. Callers pass plain string ids; lookups
against an id from another team return None rather than raising.
"""
import logging
from datetime import datetime
from typing import Optional, Any

from sqlalchemy import func, and_
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError

from . import models

logger = logging.getLogger("doable-core.crud")

# Fields an issue update may touch; anything else in a change set is ignored
ISSUE_UPDATE_FIELDS = (
    "title",
    "description",
    "priority",
    "project_id",
    "workflow_state_id",
    "assignee_id",
    "estimate",
)

PROJECT_UPDATE_FIELDS = ("name", "description", "status", "color", "icon", "lead_id")


# ============================================================================
# Team / User Operations
# ============================================================================

def get_team(db: Session, team_id: str) -> Optional[models.Team]:
    """Get a team by id."""
    return db.query(models.Team).filter(models.Team.id == team_id).first()


def get_user(db: Session, user_id: str) -> Optional[models.User]:
    """Get a user by id."""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_team_members(db: Session, team_id: str) -> list[models.TeamMember]:
    """
    Get all members of a team, oldest membership first.

    Args:
        db: Database session
        team_id: Team id

    Returns:
        List of team members with their user loaded
    """
    return (
        db.query(models.TeamMember)
        .options(selectinload(models.TeamMember.user))
        .filter(models.TeamMember.team_id == team_id)
        .order_by(models.TeamMember.joined_at, models.TeamMember.id)
        .all()
    )


def get_team_member(db: Session, team_id: str, member_id: str) -> Optional[models.TeamMember]:
    """Get a team membership row by its own id."""
    return (
        db.query(models.TeamMember)
        .filter(and_(models.TeamMember.team_id == team_id, models.TeamMember.id == member_id))
        .first()
    )


def get_team_member_by_user(db: Session, team_id: str, user_id: str) -> Optional[models.TeamMember]:
    """Get the membership of a user in a team."""
    return (
        db.query(models.TeamMember)
        .filter(and_(models.TeamMember.team_id == team_id, models.TeamMember.user_id == user_id))
        .first()
    )


def get_team_member_by_email(db: Session, team_id: str, email: str) -> Optional[models.TeamMember]:
    """Get the membership of a user in a team by the user's email (case-insensitive)."""
    return (
        db.query(models.TeamMember)
        .join(models.User, models.TeamMember.user_id == models.User.id)
        .filter(
            and_(
                models.TeamMember.team_id == team_id,
                func.lower(models.User.email) == email.strip().lower(),
            )
        )
        .first()
    )


def remove_team_member(db: Session, team_id: str, member_id: str) -> bool:
    """
    Remove a member from a team along with their project memberships in it.

    Args:
        db: Database session
        team_id: Team id
        member_id: TeamMember id

    Returns:
        True if removed, False if not found
    """
    member = get_team_member(db, team_id, member_id)
    if not member:
        return False

    project_ids = [
        row.id for row in db.query(models.Project.id).filter(models.Project.team_id == team_id)
    ]
    if project_ids:
        (
            db.query(models.ProjectMember)
            .filter(
                and_(
                    models.ProjectMember.user_id == member.user_id,
                    models.ProjectMember.project_id.in_(project_ids),
                )
            )
            .delete(synchronize_session=False)
        )

    db.delete(member)
    db.commit()
    logger.debug(f"Removed member {member_id} from team {team_id}")
    return True


# ============================================================================
# Workflow State / Label Operations
# ============================================================================

def get_workflow_states(db: Session, team_id: str) -> list[models.WorkflowState]:
    """Get the team's workflow states in board order."""
    return (
        db.query(models.WorkflowState)
        .filter(models.WorkflowState.team_id == team_id)
        .order_by(models.WorkflowState.position, models.WorkflowState.name)
        .all()
    )


def get_labels(db: Session, team_id: str) -> list[models.Label]:
    """Get the team's labels ordered by name."""
    return (
        db.query(models.Label)
        .filter(models.Label.team_id == team_id)
        .order_by(models.Label.name)
        .all()
    )


# ============================================================================
# Issue Operations
# ============================================================================

def create_issue(
    db: Session,
    team_id: str,
    title: str,
    workflow_state_id: str,
    priority: models.IssuePriority,
    project_id: Optional[str] = None,
    description: Optional[str] = None,
    assignee_id: Optional[str] = None,
    estimate: Optional[float] = None,
    label_ids: Optional[list[str]] = None,
    creator_id: Optional[str] = None,
    creator_name: Optional[str] = None,
) -> models.Issue:
    """
    Create a new issue with the next team-scoped number.

    Args:
        db: Database session
        team_id: Team id
        title: Issue title
        workflow_state_id: Workflow state id (must belong to the team)
        priority: Issue priority
        project_id: Optional project id
        description: Optional description
        assignee_id: Optional assignee user id
        estimate: Optional estimate (points or hours)
        label_ids: Optional label ids; ids from other teams are ignored
        creator_id: User id of the creator
        creator_name: Display name of the creator

    Returns:
        Created issue instance
    """
    try:
        next_number = (
            db.query(func.coalesce(func.max(models.Issue.number), 0))
            .filter(models.Issue.team_id == team_id)
            .scalar()
        ) + 1

        db_issue = models.Issue(
            team_id=team_id,
            number=next_number,
            title=title,
            description=description,
            priority=priority,
            project_id=project_id,
            workflow_state_id=workflow_state_id,
            assignee_id=assignee_id,
            estimate=estimate,
            creator_id=creator_id,
            creator_name=creator_name,
        )
        if label_ids:
            db_issue.labels = _get_team_labels(db, team_id, label_ids)

        db.add(db_issue)
        db.commit()
        db.refresh(db_issue)
    except SQLAlchemyError as e:
        logger.error(f"Database error creating issue: {e}", exc_info=True)
        db.rollback()
        raise

    logger.debug(f"Created issue #{db_issue.number} ({db_issue.id}) in team {team_id}")
    return db_issue


def get_issue(db: Session, team_id: str, issue_id: str) -> Optional[models.Issue]:
    """
    Get an issue by id within a team.

    Args:
        db: Database session
        team_id: Team id
        issue_id: Issue id

    Returns:
        Issue instance or None if not found
    """
    return (
        db.query(models.Issue)
        .filter(and_(models.Issue.team_id == team_id, models.Issue.id == issue_id))
        .first()
    )


def get_issues(db: Session, team_id: str) -> list[models.Issue]:
    """Get all issues of a team ordered by number, with relations loaded."""
    return (
        db.query(models.Issue)
        .options(
            selectinload(models.Issue.project),
            selectinload(models.Issue.workflow_state),
            selectinload(models.Issue.assignee),
            selectinload(models.Issue.labels),
        )
        .filter(models.Issue.team_id == team_id)
        .order_by(models.Issue.number)
        .all()
    )


def find_issues_by_titles(db: Session, team_id: str, titles: list[str]) -> list[models.Issue]:
    """
    Find issues whose title equals any of the given titles, ignoring case.

    Args:
        db: Database session
        team_id: Team id
        titles: Titles to look for

    Returns:
        Matching issues ordered by number
    """
    lowered = sorted({t.strip().lower() for t in titles if t and t.strip()})
    if not lowered:
        return []
    return (
        db.query(models.Issue)
        .options(selectinload(models.Issue.project))
        .filter(
            and_(
                models.Issue.team_id == team_id,
                func.lower(models.Issue.title).in_(lowered),
            )
        )
        .order_by(models.Issue.number)
        .all()
    )


def update_issue(
    db: Session,
    team_id: str,
    issue_id: str,
    changes: dict[str, Any],
) -> Optional[models.Issue]:
    """
    Apply a partial update to an issue.

    Only keys present in changes are written, so a value of None clears the
    field. label_ids, when present, replaces the issue's label set.

    Args:
        db: Database session
        team_id: Team id
        issue_id: Issue id
        changes: Field -> new value

    Returns:
        Updated issue or None if not found
    """
    db_issue = get_issue(db, team_id, issue_id)
    if not db_issue:
        return None

    for field in ISSUE_UPDATE_FIELDS:
        if field in changes:
            setattr(db_issue, field, changes[field])
    if "label_ids" in changes:
        db_issue.labels = _get_team_labels(db, team_id, changes["label_ids"] or [])

    db.commit()
    db.refresh(db_issue)
    logger.debug(f"Updated issue {issue_id}: {sorted(changes)}")
    return db_issue


def delete_issue(db: Session, team_id: str, issue_id: str) -> bool:
    """
    Delete an issue.

    Returns:
        True if deleted, False if not found
    """
    db_issue = get_issue(db, team_id, issue_id)
    if not db_issue:
        return False

    db.delete(db_issue)
    db.commit()
    logger.debug(f"Deleted issue {issue_id}")
    return True


def _get_team_labels(db: Session, team_id: str, label_ids: list[str]) -> list[models.Label]:
    if not label_ids:
        return []
    return (
        db.query(models.Label)
        .filter(and_(models.Label.team_id == team_id, models.Label.id.in_(label_ids)))
        .all()
    )


# ============================================================================
# Project Operations
# ============================================================================

def create_project(
    db: Session,
    team_id: str,
    name: str,
    key: str,
    description: Optional[str] = None,
    color: str = "#6366f1",
    icon: Optional[str] = None,
    lead_id: Optional[str] = None,
    status: models.ProjectStatus = models.ProjectStatus.ACTIVE,
) -> models.Project:
    """
    Create a new project.

    Args:
        db: Database session
        team_id: Parent team id
        name: Project name
        key: Short identifier, unique within the team
        description: Optional description
        color: Display color
        icon: Optional icon name
        lead_id: Optional project lead user id
        status: Project status

    Returns:
        Created project instance
    """
    try:
        db_project = models.Project(
            team_id=team_id,
            name=name,
            key=key,
            description=description,
            color=color,
            icon=icon,
            lead_id=lead_id,
            status=status,
        )
        db.add(db_project)
        db.commit()
        db.refresh(db_project)
    except SQLAlchemyError as e:
        logger.error(f"Database error creating project: {e}", exc_info=True)
        db.rollback()
        raise

    logger.debug(f"Created project {db_project.id} ({db_project.key}) in team {team_id}")
    return db_project


def get_project(db: Session, team_id: str, project_id: str) -> Optional[models.Project]:
    """Get a project by id within a team."""
    return (
        db.query(models.Project)
        .filter(and_(models.Project.team_id == team_id, models.Project.id == project_id))
        .first()
    )


def get_project_by_key(db: Session, team_id: str, key: str) -> Optional[models.Project]:
    """
    Get a project by team and key, ignoring case.

    Args:
        db: Database session
        team_id: Team id
        key: Project key

    Returns:
        Project instance or None if not found
    """
    return (
        db.query(models.Project)
        .filter(
            and_(
                models.Project.team_id == team_id,
                func.lower(models.Project.key) == key.strip().lower(),
            )
        )
        .first()
    )


def get_projects(db: Session, team_id: str) -> list[models.Project]:
    """Get all projects of a team in creation order."""
    return (
        db.query(models.Project)
        .filter(models.Project.team_id == team_id)
        .order_by(models.Project.created_at, models.Project.name)
        .all()
    )


def get_project_counts(db: Session, team_id: str) -> dict[str, dict[str, int]]:
    """
    Count members and issues per project.

    Returns:
        project_id -> {"member_count": int, "issue_count": int}
    """
    counts: dict[str, dict[str, int]] = {}

    member_rows = (
        db.query(models.ProjectMember.project_id, func.count(models.ProjectMember.id))
        .join(models.Project, models.ProjectMember.project_id == models.Project.id)
        .filter(models.Project.team_id == team_id)
        .group_by(models.ProjectMember.project_id)
        .all()
    )
    for project_id, count in member_rows:
        counts.setdefault(project_id, {"member_count": 0, "issue_count": 0})["member_count"] = count

    issue_rows = (
        db.query(models.Issue.project_id, func.count(models.Issue.id))
        .filter(and_(models.Issue.team_id == team_id, models.Issue.project_id.isnot(None)))
        .group_by(models.Issue.project_id)
        .all()
    )
    for project_id, count in issue_rows:
        counts.setdefault(project_id, {"member_count": 0, "issue_count": 0})["issue_count"] = count

    return counts


def update_project(
    db: Session,
    team_id: str,
    project_id: str,
    changes: dict[str, Any],
) -> Optional[models.Project]:
    """
    Apply a partial update to a project.

    Returns:
        Updated project or None if not found
    """
    db_project = get_project(db, team_id, project_id)
    if not db_project:
        return None

    for field in PROJECT_UPDATE_FIELDS:
        if field in changes:
            setattr(db_project, field, changes[field])

    db.commit()
    db.refresh(db_project)
    logger.debug(f"Updated project {project_id}: {sorted(changes)}")
    return db_project


def delete_project(db: Session, team_id: str, project_id: str) -> bool:
    """
    Delete a project and all its issues (cascading delete).

    Returns:
        True if deleted, False if not found
    """
    db_project = get_project(db, team_id, project_id)
    if not db_project:
        return False

    db.delete(db_project)
    db.commit()
    logger.debug(f"Deleted project {project_id}")
    return True


def get_project_member(db: Session, project_id: str, user_id: str) -> Optional[models.ProjectMember]:
    """Get a project membership by project and user."""
    return (
        db.query(models.ProjectMember)
        .filter(
            and_(
                models.ProjectMember.project_id == project_id,
                models.ProjectMember.user_id == user_id,
            )
        )
        .first()
    )


def add_project_member(db: Session, project_id: str, user_id: str) -> models.ProjectMember:
    """
    Add a user to a project.

    Raises:
        ValueError: If the user is already a member
    """
    if get_project_member(db, project_id, user_id):
        raise ValueError("User is already a member of this project")

    db_member = models.ProjectMember(project_id=project_id, user_id=user_id)
    db.add(db_member)
    db.commit()
    db.refresh(db_member)
    logger.debug(f"Added user {user_id} to project {project_id}")
    return db_member


def remove_project_member(db: Session, project_id: str, user_id: str) -> bool:
    """
    Remove a user from a project.

    Returns:
        True if removed, False if not found
    """
    db_member = get_project_member(db, project_id, user_id)
    if not db_member:
        return False

    db.delete(db_member)
    db.commit()
    logger.debug(f"Removed user {user_id} from project {project_id}")
    return True


def get_project_members(db: Session, project_id: str) -> list[models.ProjectMember]:
    """Get all members of a project, oldest first, with users loaded."""
    return (
        db.query(models.ProjectMember)
        .options(selectinload(models.ProjectMember.user))
        .filter(models.ProjectMember.project_id == project_id)
        .order_by(models.ProjectMember.created_at, models.ProjectMember.id)
        .all()
    )


# ============================================================================
# Invitation Operations
# ============================================================================

def get_invitation(db: Session, team_id: str, invitation_id: str) -> Optional[models.Invitation]:
    """Get an invitation by id within a team."""
    return (
        db.query(models.Invitation)
        .filter(and_(models.Invitation.team_id == team_id, models.Invitation.id == invitation_id))
        .first()
    )


def get_invitation_by_email(db: Session, team_id: str, email: str) -> Optional[models.Invitation]:
    """Get the invitation row for an email address in a team."""
    return (
        db.query(models.Invitation)
        .filter(
            and_(
                models.Invitation.team_id == team_id,
                models.Invitation.email == email.strip().lower(),
            )
        )
        .first()
    )


def get_pending_invitations(db: Session, team_id: str, now: Optional[datetime] = None) -> list[models.Invitation]:
    """Get pending, unexpired invitations, newest first."""
    now = now or datetime.utcnow()
    return (
        db.query(models.Invitation)
        .filter(
            and_(
                models.Invitation.team_id == team_id,
                models.Invitation.status == models.InvitationStatus.PENDING,
                models.Invitation.expires_at > now,
            )
        )
        .order_by(models.Invitation.created_at.desc())
        .all()
    )


def upsert_invitation(
    db: Session,
    team_id: str,
    email: str,
    role: models.TeamRole,
    invited_by: Optional[str],
    expires_at: datetime,
) -> models.Invitation:
    """
    Create the invitation for (team, email) or overwrite the existing row.

    Overwriting resets the status to pending. Callers decide whether an
    existing pending invitation may be overwritten.

    Returns:
        The created or updated invitation
    """
    try:
        db_invitation = get_invitation_by_email(db, team_id, email)
        if db_invitation is None:
            db_invitation = models.Invitation(team_id=team_id, email=email.strip().lower())
            db.add(db_invitation)
        db_invitation.role = role
        db_invitation.invited_by = invited_by
        db_invitation.status = models.InvitationStatus.PENDING
        db_invitation.expires_at = expires_at
        db.commit()
        db.refresh(db_invitation)
    except SQLAlchemyError as e:
        logger.error(f"Database error saving invitation for {email}: {e}", exc_info=True)
        db.rollback()
        raise

    logger.debug(f"Saved invitation {db_invitation.id} for {db_invitation.email} in team {team_id}")
    return db_invitation


def extend_invitation(
    db: Session, team_id: str, invitation_id: str, expires_at: datetime
) -> Optional[models.Invitation]:
    """Move an invitation's expiry date. Returns None if not found."""
    db_invitation = get_invitation(db, team_id, invitation_id)
    if not db_invitation:
        return None

    db_invitation.expires_at = expires_at
    db.commit()
    db.refresh(db_invitation)
    return db_invitation


def delete_invitation(db: Session, team_id: str, invitation_id: str) -> bool:
    """Delete an invitation. Returns False if not found."""
    db_invitation = get_invitation(db, team_id, invitation_id)
    if not db_invitation:
        return False

    db.delete(db_invitation)
    db.commit()
    logger.debug(f"Deleted invitation {invitation_id}")
    return True


# ============================================================================
# Statistics
# ============================================================================

def get_team_stats(db: Session, team_id: str) -> dict[str, Any]:
    """
    Summarise a team's size and issue distribution.

    Returns:
        Dict with issue, project, member and pending invitation counts plus
        issue counts keyed by workflow state name
    """
    issue_count = db.query(func.count(models.Issue.id)).filter(models.Issue.team_id == team_id).scalar()
    project_count = db.query(func.count(models.Project.id)).filter(models.Project.team_id == team_id).scalar()
    member_count = db.query(func.count(models.TeamMember.id)).filter(models.TeamMember.team_id == team_id).scalar()

    by_state = (
        db.query(models.WorkflowState.name, func.count(models.Issue.id))
        .join(models.Issue, models.Issue.workflow_state_id == models.WorkflowState.id)
        .filter(models.Issue.team_id == team_id)
        .group_by(models.WorkflowState.name)
        .all()
    )

    return {
        "issues": issue_count,
        "projects": project_count,
        "members": member_count,
        "pending_invitations": len(get_pending_invitations(db, team_id)),
        "issues_by_state": {name: count for name, count in by_state},
    }


# ============================================================================
# Chat Conversation Operations
# ============================================================================

def create_conversation(
    db: Session, team_id: str, user_id: str, title: Optional[str] = None
) -> models.ChatConversation:
    """Create a new chat conversation."""
    conversation = models.ChatConversation(team_id=team_id, user_id=user_id, title=title)
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    logger.debug(f"Created conversation {conversation.id} for user {user_id} in team {team_id}")
    return conversation


def get_conversation(db: Session, conversation_id: str) -> Optional[models.ChatConversation]:
    """Get a conversation by id."""
    return (
        db.query(models.ChatConversation)
        .filter(models.ChatConversation.id == conversation_id)
        .first()
    )


def save_chat_messages(db: Session, conversation_id: str, messages: list[dict[str, Any]]) -> int:
    """
    Replace a conversation's transcript.

    The client sends the full history on every turn, so the stored transcript
    is rewritten rather than appended to.

    Args:
        db: Database session
        conversation_id: Conversation id
        messages: Dicts with role, content and optional tool_calls

    Returns:
        Number of stored messages
    """
    try:
        (
            db.query(models.ChatMessage)
            .filter(models.ChatMessage.conversation_id == conversation_id)
            .delete(synchronize_session=False)
        )
        for position, message in enumerate(messages):
            db.add(
                models.ChatMessage(
                    conversation_id=conversation_id,
                    role=message["role"],
                    content=message.get("content") or "",
                    tool_calls=message.get("tool_calls"),
                    position=position,
                )
            )
        conversation = get_conversation(db, conversation_id)
        if conversation:
            conversation.updated_at = datetime.utcnow()
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error saving messages for conversation {conversation_id}: {e}", exc_info=True)
        db.rollback()
        raise

    return len(messages)


def update_conversation_title(db: Session, conversation_id: str, title: str) -> Optional[models.ChatConversation]:
    """Set a conversation's title."""
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        return None

    conversation.title = title
    db.commit()
    db.refresh(conversation)
    return conversation
