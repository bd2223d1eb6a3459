"""Team-scoped persistence adapter used by the tool handlers.

Wraps the synchronous doable_core.crud functions behind coroutines bound to
one session and one team, and converts ORM rows to plain dicts so handler
results are JSON-ready.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from doable_core import crud, models

logger = logging.getLogger("doable-chat.store")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def issue_to_dict(issue: models.Issue) -> dict[str, Any]:
    return {
        "id": issue.id,
        "number": issue.number,
        "title": issue.title,
        "description": issue.description,
        "priority": issue.priority.value,
        "project_id": issue.project_id,
        "project_name": issue.project.name if issue.project else None,
        "workflow_state_id": issue.workflow_state_id,
        "workflow_state_name": issue.workflow_state.name if issue.workflow_state else None,
        "assignee_id": issue.assignee_id,
        "assignee_name": issue.assignee.display_name if issue.assignee else None,
        "estimate": issue.estimate,
        "label_ids": [label.id for label in issue.labels],
        "labels": [label.name for label in issue.labels],
        "creator_name": issue.creator_name,
        "created_at": _iso(issue.created_at),
        "updated_at": _iso(issue.updated_at),
    }


def project_to_dict(project: models.Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "key": project.key,
        "description": project.description,
        "color": project.color,
        "icon": project.icon,
        "lead_id": project.lead_id,
        "status": project.status.value,
        "created_at": _iso(project.created_at),
    }


def invitation_to_dict(invitation: models.Invitation) -> dict[str, Any]:
    return {
        "id": invitation.id,
        "email": invitation.email,
        "role": invitation.role.value,
        "status": invitation.status.value,
        "invited_by": invitation.invited_by,
        "expires_at": invitation.expires_at,
        "created_at": _iso(invitation.created_at),
    }


def team_member_to_dict(member: models.TeamMember) -> dict[str, Any]:
    return {
        "id": member.id,
        "user_id": member.user_id,
        "user_name": member.user.display_name,
        "user_email": member.user.email,
        "role": member.role.value,
        "joined_at": _iso(member.joined_at),
    }


def project_member_to_dict(member: models.ProjectMember) -> dict[str, Any]:
    return {
        "id": member.id,
        "project_id": member.project_id,
        "user_id": member.user_id,
        "user_name": member.user.display_name,
        "user_email": member.user.email,
        "created_at": _iso(member.created_at),
    }


class TeamStore:
    """Async persistence operations for a single team."""

    def __init__(self, db: Session, team_id: str):
        self.db = db
        self.team_id = team_id

    # Team -----------------------------------------------------------------

    async def get_stats(self) -> dict[str, Any]:
        return crud.get_team_stats(self.db, self.team_id)

    # Issues ---------------------------------------------------------------

    async def create_issue(self, data: dict[str, Any], actor_id: Optional[str], actor_name: Optional[str]) -> dict[str, Any]:
        issue = crud.create_issue(
            self.db,
            self.team_id,
            title=data["title"],
            workflow_state_id=data["workflow_state_id"],
            priority=models.IssuePriority(data["priority"]),
            project_id=data.get("project_id"),
            description=data.get("description"),
            assignee_id=data.get("assignee_id"),
            estimate=data.get("estimate"),
            label_ids=data.get("label_ids"),
            creator_id=actor_id,
            creator_name=actor_name,
        )
        return issue_to_dict(issue)

    async def update_issue(self, issue_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        if "priority" in changes and changes["priority"] is not None:
            changes = {**changes, "priority": models.IssuePriority(changes["priority"])}
        issue = crud.update_issue(self.db, self.team_id, issue_id, changes)
        return issue_to_dict(issue) if issue else None

    async def get_issues(self) -> list[dict[str, Any]]:
        return [issue_to_dict(i) for i in crud.get_issues(self.db, self.team_id)]

    async def get_issue_by_id(self, issue_id: str) -> Optional[dict[str, Any]]:
        issue = crud.get_issue(self.db, self.team_id, issue_id)
        return issue_to_dict(issue) if issue else None

    async def find_issues_by_titles(self, titles: list[str]) -> list[dict[str, Any]]:
        return [issue_to_dict(i) for i in crud.find_issues_by_titles(self.db, self.team_id, titles)]

    async def delete_issue(self, issue_id: str) -> bool:
        return crud.delete_issue(self.db, self.team_id, issue_id)

    # Projects -------------------------------------------------------------

    async def create_project(self, data: dict[str, Any]) -> dict[str, Any]:
        project = crud.create_project(
            self.db,
            self.team_id,
            name=data["name"],
            key=data["key"],
            description=data.get("description"),
            color=data["color"],
            icon=data.get("icon"),
            lead_id=data.get("lead_id"),
            status=models.ProjectStatus(data.get("status") or "active"),
        )
        return project_to_dict(project)

    async def update_project(self, project_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        if changes.get("status") is not None:
            changes = {**changes, "status": models.ProjectStatus(changes["status"])}
        project = crud.update_project(self.db, self.team_id, project_id, changes)
        return project_to_dict(project) if project else None

    async def delete_project(self, project_id: str) -> bool:
        return crud.delete_project(self.db, self.team_id, project_id)

    async def list_projects(self) -> list[dict[str, Any]]:
        counts = crud.get_project_counts(self.db, self.team_id)
        projects = []
        for project in crud.get_projects(self.db, self.team_id):
            item = project_to_dict(project)
            item.update(counts.get(project.id, {"member_count": 0, "issue_count": 0}))
            projects.append(item)
        return projects

    async def get_project(self, project_id: str) -> Optional[dict[str, Any]]:
        project = crud.get_project(self.db, self.team_id, project_id)
        return project_to_dict(project) if project else None

    async def find_project_by_key(self, key: str) -> Optional[dict[str, Any]]:
        project = crud.get_project_by_key(self.db, self.team_id, key)
        return project_to_dict(project) if project else None

    # Project members ------------------------------------------------------

    async def get_project_member(self, project_id: str, user_id: str) -> Optional[dict[str, Any]]:
        member = crud.get_project_member(self.db, project_id, user_id)
        return project_member_to_dict(member) if member else None

    async def add_project_member(self, project_id: str, user_id: str) -> dict[str, Any]:
        return project_member_to_dict(crud.add_project_member(self.db, project_id, user_id))

    async def remove_project_member(self, project_id: str, user_id: str) -> bool:
        return crud.remove_project_member(self.db, project_id, user_id)

    async def list_project_members(self, project_id: str) -> list[dict[str, Any]]:
        return [project_member_to_dict(m) for m in crud.get_project_members(self.db, project_id)]

    # Team members ---------------------------------------------------------

    async def list_team_members(self) -> list[dict[str, Any]]:
        return [team_member_to_dict(m) for m in crud.get_team_members(self.db, self.team_id)]

    async def get_team_member(self, member_id: str) -> Optional[dict[str, Any]]:
        member = crud.get_team_member(self.db, self.team_id, member_id)
        return team_member_to_dict(member) if member else None

    async def get_team_member_by_user(self, user_id: str) -> Optional[dict[str, Any]]:
        member = crud.get_team_member_by_user(self.db, self.team_id, user_id)
        return team_member_to_dict(member) if member else None

    async def get_team_member_by_email(self, email: str) -> Optional[dict[str, Any]]:
        member = crud.get_team_member_by_email(self.db, self.team_id, email)
        return team_member_to_dict(member) if member else None

    async def delete_team_member(self, member_id: str) -> bool:
        return crud.remove_team_member(self.db, self.team_id, member_id)

    # Invitations ----------------------------------------------------------

    async def get_invitation(self, invitation_id: str) -> Optional[dict[str, Any]]:
        invitation = crud.get_invitation(self.db, self.team_id, invitation_id)
        return invitation_to_dict(invitation) if invitation else None

    async def get_invitation_by_email(self, email: str) -> Optional[dict[str, Any]]:
        invitation = crud.get_invitation_by_email(self.db, self.team_id, email)
        return invitation_to_dict(invitation) if invitation else None

    async def upsert_invitation(
        self, email: str, role: str, invited_by: Optional[str], expires_at: datetime
    ) -> dict[str, Any]:
        invitation = crud.upsert_invitation(
            self.db,
            self.team_id,
            email=email,
            role=models.TeamRole(role),
            invited_by=invited_by,
            expires_at=expires_at,
        )
        return invitation_to_dict(invitation)

    async def extend_invitation(self, invitation_id: str, expires_at: datetime) -> Optional[dict[str, Any]]:
        invitation = crud.extend_invitation(self.db, self.team_id, invitation_id, expires_at)
        return invitation_to_dict(invitation) if invitation else None

    async def delete_invitation(self, invitation_id: str) -> bool:
        return crud.delete_invitation(self.db, self.team_id, invitation_id)
