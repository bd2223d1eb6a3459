"""Per-request snapshot of the reference data the assistant can talk about."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from doable_core import crud

logger = logging.getLogger("doable-chat.context")


@dataclass(frozen=True)
class ProjectSummary:
    id: str
    name: str
    key: str
    description: Optional[str]
    status: str
    member_count: int = 0
    issue_count: int = 0


@dataclass(frozen=True)
class WorkflowStateSummary:
    id: str
    name: str
    type: str
    position: int


@dataclass(frozen=True)
class LabelSummary:
    id: str
    name: str
    color: str


@dataclass(frozen=True)
class MemberSummary:
    user_id: str
    user_name: str
    user_email: str
    role: str


@dataclass(frozen=True)
class TeamContext:
    """Read-only view of a team, assembled once per chat turn.

    Handlers resolve names against this snapshot; mutations made during the
    turn are not reflected in it.
    """

    team_id: str
    team_name: str
    projects: tuple[ProjectSummary, ...] = ()
    workflow_states: tuple[WorkflowStateSummary, ...] = ()
    labels: tuple[LabelSummary, ...] = ()
    members: tuple[MemberSummary, ...] = ()


def load_team_context(db: Session, team_id: str) -> TeamContext:
    """
    Load the team's projects, workflow states, labels and members.

    Args:
        db: Database session
        team_id: Team id

    Returns:
        TeamContext snapshot

    Raises:
        LookupError: If the team does not exist
    """
    team = crud.get_team(db, team_id)
    if team is None:
        raise LookupError(f"Team {team_id} not found")

    counts = crud.get_project_counts(db, team_id)
    projects = tuple(
        ProjectSummary(
            id=p.id,
            name=p.name,
            key=p.key,
            description=p.description,
            status=p.status.value,
            member_count=counts.get(p.id, {}).get("member_count", 0),
            issue_count=counts.get(p.id, {}).get("issue_count", 0),
        )
        for p in crud.get_projects(db, team_id)
    )
    workflow_states = tuple(
        WorkflowStateSummary(id=s.id, name=s.name, type=s.type.value, position=s.position)
        for s in crud.get_workflow_states(db, team_id)
    )
    labels = tuple(
        LabelSummary(id=label.id, name=label.name, color=label.color)
        for label in crud.get_labels(db, team_id)
    )
    members = tuple(
        MemberSummary(
            user_id=m.user_id,
            user_name=m.user.display_name,
            user_email=m.user.email,
            role=m.role.value,
        )
        for m in crud.get_team_members(db, team_id)
    )

    logger.debug(
        f"Loaded context for team {team_id}: {len(projects)} projects, "
        f"{len(workflow_states)} states, {len(labels)} labels, {len(members)} members"
    )
    return TeamContext(
        team_id=team.id,
        team_name=team.name,
        projects=projects,
        workflow_states=workflow_states,
        labels=labels,
        members=members,
    )
