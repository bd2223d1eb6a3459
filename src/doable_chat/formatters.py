"""Shared text formatting for tool messages and the system prompt."""
from typing import Any, Iterable

from .context import TeamContext


def issue_ref(issue: dict) -> str:
    """Issue reference in the #number "title" form."""
    return f'#{issue["number"]} "{issue["title"]}"'


def project_ref(project: Any) -> str:
    """Website (WEB). Accepts a dict or a ProjectSummary."""
    if isinstance(project, dict):
        return f'{project["name"]} ({project["key"]})'
    return f"{project.name} ({project.key})"


def member_ref(member: Any) -> str:
    if isinstance(member, dict):
        return f'{member["user_name"]} ({member["user_email"]})'
    return f"{member.user_name} ({member.user_email})"


def join_refs(refs: Iterable[str]) -> str:
    return ", ".join(refs)


def available_projects(ctx: TeamContext) -> str:
    return join_refs(project_ref(p) for p in ctx.projects) or "none"


def available_states(ctx: TeamContext) -> str:
    return join_refs(s.name for s in ctx.workflow_states) or "none"


def available_members(ctx: TeamContext) -> str:
    return join_refs(member_ref(m) for m in ctx.members) or "No team members found"


def format_issue_line(issue: dict) -> str:
    """One-line issue summary used in listings."""
    parts = [issue_ref(issue), f'[{issue["workflow_state_name"]}]', f'priority {issue["priority"]}']
    if issue.get("project_name"):
        parts.append(f'project {issue["project_name"]}')
    if issue.get("assignee_name"):
        parts.append(f'assigned to {issue["assignee_name"]}')
    return " ".join(parts)


def format_team_context(ctx: TeamContext) -> str:
    """Render the team snapshot as prompt text."""
    projects = "\n".join(
        f"- {p.name} (key: {p.key}, id: {p.id}, status: {p.status}, "
        f"{p.issue_count} issues, {p.member_count} members)"
        for p in ctx.projects
    ) or "- (no projects yet)"
    states = "\n".join(
        f"- {s.name} (type: {s.type}, id: {s.id})" for s in ctx.workflow_states
    ) or "- (none)"
    labels = "\n".join(f"- {label.name} (id: {label.id})" for label in ctx.labels) or "- (none)"
    members = "\n".join(
        f"- {m.user_name} <{m.user_email}> (role: {m.role}, user id: {m.user_id})" for m in ctx.members
    ) or "- (none)"

    return f"""Team: {ctx.team_name}

Projects:
{projects}

Workflow states:
{states}

Labels:
{labels}

Members:
{members}"""
