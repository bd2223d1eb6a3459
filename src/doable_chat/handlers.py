"""Tool handlers for the chat assistant.

All handlers follow a consistent pattern:
- Accept: arguments dict (aliases already normalised) and a ToolContext
- Validate required fields before any lookup with side effects
- Resolve names against the TeamContext snapshot, re-query the store where
  ambiguity must be detected
- Return a ToolResult; the tool_handler guard turns every exception into a
  failed result, so handlers never raise to the caller

Batch handlers aggregate per-item outcomes with results.summarize_batch.
"""
import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from doable_core.models import IssuePriority, ProjectStatus, TeamRole

from . import formatters
from .context import TeamContext
from .errors import (
    ValidationError,
    NotFoundError,
    AmbiguousReferenceError,
    ConflictError,
    AuthorizationError,
)
from .resolvers import (
    resolve_workflow_state,
    resolve_project,
    resolve_assignee,
    resolve_member,
    resolve_label_ids,
)
from .results import ToolResult, ItemOk, capture, summarize_batch, tool_handler
from .sentinels import is_missing, is_unassign, clean
from .store import TeamStore
from .validators import (
    ALIASES,
    PROJECT_ALIASES,
    normalize_aliases,
    validate_issue_fields,
    validate_project_fields,
    format_validation_error,
    format_batch_validation_error,
    normalize_project_key,
    is_valid_email,
    parse_priority,
    parse_project_status,
    parse_role,
    allowed_values,
)

logger = logging.getLogger("doable-chat.handlers")

Mailer = Callable[..., Awaitable[dict]]


@dataclass
class ToolContext:
    """Everything a handler needs for one chat turn."""

    team_id: str
    actor_id: Optional[str]
    actor_name: Optional[str]
    actor_email: Optional[str]
    team_context: TeamContext
    store: TeamStore
    mailer: Optional[Mailer] = None
    app_url: str = "http://localhost:3000"
    locale: str = "en"
    invitation_ttl_days: int = 7
    default_project_color: str = "#6366f1"


# ============================================================================
# Shared helpers
# ============================================================================

def _items(arguments: dict, key: str, noun: str, aliases: dict) -> list[dict]:
    raw = arguments.get(key)
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"At least one {noun} is required")
    return [normalize_aliases(item, aliases) if isinstance(item, dict) else {} for item in raw]


def _parse_estimate(value: Any) -> Optional[float]:
    if is_missing(value):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid estimate "{value}". Use a number.')


def _as_list(value: Any) -> list:
    if is_missing(value):
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _require_priority(value: Any) -> IssuePriority:
    priority = parse_priority(value)
    if priority is None:
        raise ValidationError(f'Invalid priority "{value}". Use one of: {allowed_values(IssuePriority)}.')
    return priority


def _require_state(ctx: ToolContext, ref: Any) -> str:
    state_id = resolve_workflow_state(ctx.team_context, str(ref))
    if state_id is None:
        raise NotFoundError(
            f'Workflow state "{ref}" not found. Available states: {formatters.available_states(ctx.team_context)}'
        )
    return state_id


def _resolve_assignee_id(ctx: ToolContext, ref: Any) -> Optional[str]:
    if is_unassign(ref):
        return None
    member = resolve_assignee(ctx.team_context, str(ref))
    if member is None:
        logger.warning(f'Assignee "{ref}" did not match any team member; leaving issue unassigned')
        return None
    return member.user_id


async def _find_issue(ctx: ToolContext, issue_id: Any, title: Any) -> dict:
    """Find one issue by id, else by case-insensitive title substring."""
    if not is_missing(issue_id):
        issue = await ctx.store.get_issue_by_id(str(issue_id).strip())
        if issue is None:
            raise NotFoundError(f"Issue {issue_id} not found")
        return issue
    if is_missing(title):
        raise ValidationError("Either issue_id or title must be provided")

    needle = str(title).strip().lower()
    matches = [i for i in await ctx.store.get_issues() if needle in i["title"].lower()]
    if not matches:
        raise NotFoundError(f'No issue found with title "{title}"')
    if len(matches) > 1:
        refs = formatters.join_refs(formatters.issue_ref(i) for i in matches)
        raise AmbiguousReferenceError(
            f'Multiple issues found matching "{title}": {refs}. Please be more specific.'
        )
    return matches[0]


async def _find_project(ctx: ToolContext, project_id: Any, name: Any) -> dict:
    """Find one project by id, else by key (exact) or name substring."""
    if not is_missing(project_id):
        project = await ctx.store.get_project(str(project_id).strip())
        if project is not None:
            return project
        # Models often pass a name or key in the id slot
        if is_missing(name):
            name = project_id
    if is_missing(name):
        raise ValidationError("Either project_id or project name must be provided")

    needle = str(name).strip().lower()
    projects = await ctx.store.list_projects()
    by_key = [p for p in projects if p["key"].lower() == needle]
    if len(by_key) == 1:
        return by_key[0]
    matches = [p for p in projects if needle in p["name"].lower()]
    if not matches:
        raise NotFoundError(f'No project found with name "{name}"')
    if len(matches) > 1:
        refs = formatters.join_refs(formatters.project_ref(p) for p in matches)
        raise AmbiguousReferenceError(
            f'Multiple projects found matching "{name}": {refs}. Please be more specific.'
        )
    return matches[0]


# ============================================================================
# Issue Handlers
# ============================================================================

def _issue_payload(candidate: dict, ctx: ToolContext) -> dict:
    """Resolve a validated candidate into persistence fields."""
    priority = _require_priority(candidate["priority"])
    state_id = _require_state(ctx, candidate["workflow_state_id"])

    project_ref = str(candidate["project_id"])
    project = resolve_project(ctx.team_context, project_ref)
    if project is None:
        raise NotFoundError(
            f'Project "{project_ref}" not found. Available projects: {formatters.available_projects(ctx.team_context)}'
        )

    return {
        "title": str(candidate["title"]).strip(),
        "description": clean(candidate.get("description")),
        "priority": priority.value,
        "workflow_state_id": state_id,
        "project_id": project.id,
        "assignee_id": _resolve_assignee_id(ctx, candidate.get("assignee_id")),
        "estimate": _parse_estimate(candidate.get("estimate")),
        "label_ids": resolve_label_ids(ctx.team_context, _as_list(candidate.get("label_ids"))),
    }


async def _create_issue_item(candidate: dict, ctx: ToolContext) -> ItemOk:
    data = _issue_payload(candidate, ctx)
    issue = await ctx.store.create_issue(data, ctx.actor_id, ctx.actor_name)
    logger.info(f"Created issue {formatters.issue_ref(issue)} ({issue['id']}) in team {ctx.team_id}")
    return ItemOk(label=formatters.issue_ref(issue), data=issue)


@tool_handler("Failed to create issue")
async def handle_create_issue(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Create one issue.

    Steps: validate required fields, reject a case-insensitive duplicate
    title anywhere in the team, resolve names to ids, create.
    """
    validation = validate_issue_fields(arguments)
    if not validation.is_valid:
        raise ValidationError(format_validation_error(validation.missing_fields, ctx.team_context))

    title = str(arguments["title"]).strip()
    duplicates = await ctx.store.find_issues_by_titles([title])
    if duplicates:
        raise ConflictError(
            f'An issue titled "{title}" already exists: {formatters.issue_ref(duplicates[0])}. '
            "Use a different title or update the existing issue."
        )

    item = await _create_issue_item(arguments, ctx)
    issue = item.data
    return ToolResult.ok(
        f'Created issue {item.label} in {issue["project_name"]} ({issue["workflow_state_name"]}, '
        f'priority {issue["priority"]})',
        data=issue,
    )


@tool_handler("Failed to create issues")
async def handle_create_issues(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Create several issues at once.

    The whole batch is rejected if any item misses required fields or if
    any title already exists (or repeats within the batch). Otherwise items
    are resolved and created concurrently and reported individually.
    """
    items = _items(arguments, "issues", "issue", ALIASES)

    problems = []
    for position, item in enumerate(items, start=1):
        validation = validate_issue_fields(item)
        if not validation.is_valid:
            problems.append((position, validation.missing_fields))
    if problems:
        raise ValidationError(format_batch_validation_error(problems, "Issue", ctx.team_context))

    titles = [str(item["title"]).strip() for item in items]
    existing = await ctx.store.find_issues_by_titles(titles)
    conflicts = [f'"{i["title"]}" already exists as {formatters.issue_ref(i)}' for i in existing]
    seen: set[str] = set()
    for title in titles:
        if title.lower() in seen:
            conflicts.append(f'"{title}" appears more than once in this request')
        seen.add(title.lower())
    if conflicts:
        raise ConflictError(f"Duplicate issue titles: {'; '.join(conflicts)}. No issues were created.")

    outcomes = await asyncio.gather(
        *(capture(f'"{title}"', _create_issue_item(item, ctx)) for title, item in zip(titles, items))
    )
    result = summarize_batch(list(outcomes), "create", "created", "issue", "created_count")
    logger.info(f"create_issues: {result.created_count} created, {result.failed_count} failed")
    return result


async def _issue_changes(item: dict, issue: dict, ctx: ToolContext) -> dict:
    changes: dict[str, Any] = {}

    new_title = clean(item.get("new_title"))
    if new_title is not None and new_title != issue["title"]:
        if new_title.lower() != issue["title"].lower():
            clashes = [i for i in await ctx.store.find_issues_by_titles([new_title]) if i["id"] != issue["id"]]
            if clashes:
                raise ConflictError(
                    f'Cannot rename: an issue titled "{new_title}" already exists: {formatters.issue_ref(clashes[0])}'
                )
        changes["title"] = new_title

    if "description" in item:
        changes["description"] = clean(item["description"])

    if not is_missing(item.get("workflow_state_id")):
        changes["workflow_state_id"] = _require_state(ctx, item["workflow_state_id"])

    if "assignee_id" in item:
        changes["assignee_id"] = _resolve_assignee_id(ctx, item["assignee_id"])

    if not is_missing(item.get("priority")):
        changes["priority"] = _require_priority(item["priority"]).value

    if "estimate" in item:
        changes["estimate"] = _parse_estimate(item["estimate"])

    if "label_ids" in item:
        changes["label_ids"] = resolve_label_ids(ctx.team_context, _as_list(item["label_ids"]))

    if not is_missing(item.get("project_id")):
        project = resolve_project(ctx.team_context, str(item["project_id"]))
        if project is None:
            raise NotFoundError(
                f'Project "{item["project_id"]}" not found. '
                f"Available projects: {formatters.available_projects(ctx.team_context)}"
            )
        changes["project_id"] = project.id

    return changes


async def _update_issue_item(item: dict, ctx: ToolContext) -> ItemOk:
    issue = await _find_issue(ctx, item.get("issue_id"), item.get("title"))
    changes = await _issue_changes(item, issue, ctx)
    if not changes:
        raise ValidationError(f"No changes given for issue {formatters.issue_ref(issue)}")
    updated = await ctx.store.update_issue(issue["id"], changes)
    if updated is None:
        raise NotFoundError(f"Issue {issue['id']} not found")
    logger.info(f"Updated issue {formatters.issue_ref(updated)}: {sorted(changes)}")
    return ItemOk(label=formatters.issue_ref(updated), data=updated)


@tool_handler("Failed to update issue")
async def handle_update_issue(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Update an issue found by id or title.

    assignee_id: omitted leaves it unchanged, null/"unassigned" clears it.
    label_ids replaces the label set.
    """
    item = await _update_issue_item(arguments, ctx)
    return ToolResult.ok(f"Updated issue {item.label}", data=item.data)


@tool_handler("Failed to update issues")
async def handle_update_issues(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Update several issues, one after another in the given order."""
    items = _items(arguments, "updates", "issue update", ALIASES)
    outcomes = []
    for position, item in enumerate(items, start=1):
        label = clean(item.get("title")) or clean(item.get("issue_id")) or f"Update {position}"
        outcomes.append(await capture(f'"{label}"', _update_issue_item(item, ctx)))
    result = summarize_batch(outcomes, "update", "updated", "issue", "updated_count")
    logger.info(f"update_issues: {result.updated_count} updated, {result.failed_count} failed")
    return result


async def _delete_issue_item(item: dict, ctx: ToolContext) -> ItemOk:
    issue = await _find_issue(ctx, item.get("issue_id"), item.get("title"))
    if not await ctx.store.delete_issue(issue["id"]):
        raise NotFoundError(f"Issue {issue['id']} not found")
    logger.info(f"Deleted issue {formatters.issue_ref(issue)} ({issue['id']})")
    return ItemOk(
        label=formatters.issue_ref(issue),
        data={"id": issue["id"], "number": issue["number"], "title": issue["title"]},
    )


@tool_handler("Failed to delete issue")
async def handle_delete_issue(arguments: dict, ctx: ToolContext) -> ToolResult:
    item = await _delete_issue_item(arguments, ctx)
    return ToolResult.ok(f"Issue {item.label} has been deleted successfully.", data=item.data)


@tool_handler("Failed to delete issues")
async def handle_delete_issues(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Delete several issues, one after another in the given order."""
    items = _items(arguments, "issues", "issue", ALIASES)
    outcomes = []
    for position, item in enumerate(items, start=1):
        label = clean(item.get("title")) or clean(item.get("issue_id")) or f"Issue {position}"
        outcomes.append(await capture(f'"{label}"', _delete_issue_item(item, ctx)))
    result = summarize_batch(outcomes, "delete", "deleted", "issue", "deleted_count")
    logger.info(f"delete_issues: {result.deleted_count} deleted, {result.failed_count} failed")
    return result


@tool_handler("Failed to get issue")
async def handle_get_issue(arguments: dict, ctx: ToolContext) -> ToolResult:
    issue = await _find_issue(ctx, arguments.get("issue_id"), arguments.get("title"))
    return ToolResult.ok(formatters.format_issue_line(issue), data=issue)


@tool_handler("Failed to list issues")
async def handle_list_issues(arguments: dict, ctx: ToolContext) -> ToolResult:
    """List all team issues, or the first `limit` of them."""
    issues = await ctx.store.get_issues()
    limit = arguments.get("limit")
    limited = issues
    if not is_missing(limit):
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid limit "{limit}". Use a positive number.')
        if limit > 0:
            limited = issues[:limit]

    if len(limited) == len(issues):
        message = f"Found all {len(issues)} issues"
    else:
        message = f"Showing {len(limited)} of {len(issues)} total issues"
    return ToolResult.ok(message, data={"issues": limited, "count": len(limited), "total": len(issues)})


# ============================================================================
# Project Handlers
# ============================================================================

def _project_payload(candidate: dict, ctx: ToolContext) -> dict:
    raw_key = str(candidate["key"])
    key = normalize_project_key(raw_key)
    if key is None:
        raise ValidationError(f'Project key "{raw_key}" must be exactly 3 letters or digits (e.g. "WEB").')

    status = ProjectStatus.ACTIVE
    if not is_missing(candidate.get("status")):
        status = parse_project_status(candidate["status"])
        if status is None:
            raise ValidationError(
                f'Invalid project status "{candidate["status"]}". Use one of: {allowed_values(ProjectStatus)}.'
            )

    return {
        "name": str(candidate["name"]).strip(),
        "key": key,
        "description": clean(candidate.get("description")),
        "color": clean(candidate.get("color")) or ctx.default_project_color,
        "icon": clean(candidate.get("icon")),
        "lead_id": _resolve_lead_id(ctx, candidate.get("lead_id")),
        "status": status.value,
    }


def _resolve_lead_id(ctx: ToolContext, ref: Any) -> Optional[str]:
    if is_unassign(ref):
        return None
    member = resolve_assignee(ctx.team_context, str(ref))
    if member is None:
        raise NotFoundError(
            f'Project lead "{ref}" is not a team member. '
            f"Available team members: {formatters.available_members(ctx.team_context)}"
        )
    return member.user_id


@tool_handler("Failed to create project")
async def handle_create_project(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Create a project. Name and a 3-character key are required."""
    validation = validate_project_fields(arguments)
    if not validation.is_valid:
        raise ValidationError(format_validation_error(validation.missing_fields))

    data = _project_payload(arguments, ctx)
    existing = await ctx.store.find_project_by_key(data["key"])
    if existing:
        raise ConflictError(
            f'A project with key "{data["key"]}" already exists: {formatters.project_ref(existing)}'
        )

    project = await ctx.store.create_project(data)
    logger.info(f"Created project {formatters.project_ref(project)} ({project['id']}) in team {ctx.team_id}")
    return ToolResult.ok(f"Created project {formatters.project_ref(project)}", data=project)


@tool_handler("Failed to create projects")
async def handle_create_projects(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Create several projects.

    Missing names or keys reject the whole batch. Key conflicts, with
    existing projects or within the batch, fail only the affected item.
    """
    items = _items(arguments, "projects", "project", PROJECT_ALIASES)

    problems = []
    for position, item in enumerate(items, start=1):
        validation = validate_project_fields(item)
        if not validation.is_valid:
            problems.append((position, validation.missing_fields))
    if problems:
        raise ValidationError(format_batch_validation_error(problems, "Project", ctx.team_context))

    taken = {p["key"].upper(): p for p in await ctx.store.list_projects()}

    async def create_one(item: dict) -> ItemOk:
        data = _project_payload(item, ctx)
        if data["key"] in taken:
            raise ConflictError(f'key "{data["key"]}" is already used by {formatters.project_ref(taken[data["key"]])}')
        project = await ctx.store.create_project(data)
        taken[project["key"]] = project
        logger.info(f"Created project {formatters.project_ref(project)} ({project['id']})")
        return ItemOk(label=formatters.project_ref(project), data=project)

    outcomes = []
    for item in items:
        outcomes.append(await capture(f'"{str(item["name"]).strip()}"', create_one(item)))
    return summarize_batch(outcomes, "create", "created", "project", "created_count")


@tool_handler("Failed to update project")
async def handle_update_project(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Update a project found by id or name."""
    project = await _find_project(ctx, arguments.get("project_id"), arguments.get("name"))

    changes: dict[str, Any] = {}
    new_name = clean(arguments.get("new_name"))
    if new_name is not None:
        changes["name"] = new_name
    if "description" in arguments:
        changes["description"] = clean(arguments["description"])
    if not is_missing(arguments.get("status")):
        status = parse_project_status(arguments["status"])
        if status is None:
            raise ValidationError(
                f'Invalid project status "{arguments["status"]}". Use one of: {allowed_values(ProjectStatus)}.'
            )
        changes["status"] = status.value
    for field in ("color", "icon"):
        if not is_missing(arguments.get(field)):
            changes[field] = clean(arguments[field])
    if "lead_id" in arguments:
        changes["lead_id"] = _resolve_lead_id(ctx, arguments["lead_id"])

    if not changes:
        raise ValidationError(f"No changes given for project {formatters.project_ref(project)}")

    updated = await ctx.store.update_project(project["id"], changes)
    if updated is None:
        raise NotFoundError("Project not found")
    logger.info(f"Updated project {formatters.project_ref(updated)}: {sorted(changes)}")
    return ToolResult.ok(f"Updated project {formatters.project_ref(updated)}", data=updated)


@tool_handler("Failed to delete project")
async def handle_delete_project(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Delete a project and every issue in it."""
    project = await _find_project(ctx, arguments.get("project_id"), arguments.get("name"))
    if not await ctx.store.delete_project(project["id"]):
        raise NotFoundError("Project not found")
    logger.info(f"Deleted project {formatters.project_ref(project)} ({project['id']})")
    return ToolResult.ok(
        f"Project {formatters.project_ref(project)} and all its issues have been deleted.",
        data={"id": project["id"], "name": project["name"], "key": project["key"]},
    )


@tool_handler("Failed to list projects")
async def handle_list_projects(arguments: dict, ctx: ToolContext) -> ToolResult:
    projects = await ctx.store.list_projects()
    return ToolResult.ok(f"Found {len(projects)} projects", data={"projects": projects, "count": len(projects)})


# ============================================================================
# Invitation Handlers
# ============================================================================

def _invite_url(ctx: ToolContext, invitation_id: str) -> str:
    return f"{ctx.app_url.rstrip('/')}/invite/{invitation_id}"


async def _send_invitation(ctx: ToolContext, invitation: dict, invite_url: str) -> bool:
    """Send the invitation email. Failures are logged, never raised."""
    if ctx.mailer is None:
        logger.info(f"No mailer configured; invitation URL for {invitation['email']}: {invite_url}")
        return False
    try:
        outcome = await ctx.mailer(
            email=invitation["email"],
            team_name=ctx.team_context.team_name,
            inviter_name=ctx.actor_name or ctx.actor_email or "A teammate",
            role=invitation["role"],
            invite_url=invite_url,
            locale=ctx.locale,
        )
    except Exception as e:
        logger.error(f"Invitation email to {invitation['email']} failed: {e}", exc_info=True)
        return False
    if not outcome or not outcome.get("success"):
        logger.warning(f"Invitation email to {invitation['email']} was not delivered: {outcome}")
        return False
    return not outcome.get("skipped", False)


async def _invite_item(item: dict, ctx: ToolContext) -> ItemOk:
    email = clean(item.get("email"))
    if not is_valid_email(email):
        raise ValidationError(f'Invalid email address "{email or ""}"')
    email = email.lower()

    raw_role = item.get("role")
    role = TeamRole.DEVELOPER if is_missing(raw_role) else parse_role(raw_role)
    if role is None:
        raise ValidationError(f'Invalid role "{raw_role}". Use one of: {allowed_values(TeamRole)}.')

    if await ctx.store.get_team_member_by_email(email):
        raise ConflictError(f"{email} is already a member of this team")

    now = datetime.utcnow()
    existing = await ctx.store.get_invitation_by_email(email)
    if existing and existing["status"] == "pending" and existing["expires_at"] > now:
        raise ConflictError(f"An invitation has already been sent to {email} and is still pending")

    invitation = await ctx.store.upsert_invitation(
        email, role.value, ctx.actor_id, now + timedelta(days=ctx.invitation_ttl_days)
    )
    invite_url = _invite_url(ctx, invitation["id"])
    email_sent = await _send_invitation(ctx, invitation, invite_url)
    logger.info(f"Invited {email} as {role.value} to team {ctx.team_id} (email sent: {email_sent})")
    return ItemOk(label=email, data={**invitation, "invite_url": invite_url, "email_sent": email_sent})


@tool_handler("Failed to invite team member")
async def handle_invite_team_member(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Invite one person by email. Role defaults to developer."""
    item = await _invite_item(arguments, ctx)
    return ToolResult.ok(f"Invitation sent to {item.label} as {item.data['role']}.", data=item.data, sent_count=1)


@tool_handler("Failed to invite team members")
async def handle_invite_team_members(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Invite several people; each address succeeds or fails on its own."""
    items = _items(arguments, "invitations", "invitation", {})
    outcomes = []
    for position, item in enumerate(items, start=1):
        label = clean(item.get("email")) or f"Invitation {position}"
        outcomes.append(await capture(label, _invite_item(item, ctx)))
    result = summarize_batch(outcomes, "send", "sent", "invitation", "sent_count")
    logger.info(f"invite_team_members: {result.sent_count} sent, {result.failed_count} failed")
    return result


async def _find_invitation(ctx: ToolContext, invitation_id: Any, email: Any, pending_only: bool) -> dict:
    if not is_missing(invitation_id):
        invitation = await ctx.store.get_invitation(str(invitation_id).strip())
        if invitation is None:
            raise NotFoundError("Invitation not found")
        return invitation
    if is_missing(email):
        raise ValidationError("Either invitation_id or email must be provided")
    invitation = await ctx.store.get_invitation_by_email(str(email))
    if invitation is None or (pending_only and invitation["status"] != "pending"):
        raise NotFoundError(f"No pending invitation found for {email}")
    return invitation


@tool_handler("Failed to revoke invitation")
async def handle_revoke_invitation(arguments: dict, ctx: ToolContext) -> ToolResult:
    invitation = await _find_invitation(ctx, arguments.get("invitation_id"), arguments.get("email"), pending_only=True)
    await ctx.store.delete_invitation(invitation["id"])
    logger.info(f"Revoked invitation {invitation['id']} for {invitation['email']}")
    return ToolResult.ok(f"Invitation for {invitation['email']} has been revoked.", data={"id": invitation["id"]})


@tool_handler("Failed to resend invitation")
async def handle_resend_invitation(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Push the expiry date out by the invitation lifetime and send the email again."""
    invitation = await _find_invitation(ctx, arguments.get("invitation_id"), arguments.get("email"), pending_only=False)
    if invitation["status"] == "accepted":
        raise ConflictError(f"The invitation for {invitation['email']} has already been accepted")

    expires_at = datetime.utcnow() + timedelta(days=ctx.invitation_ttl_days)
    updated = await ctx.store.extend_invitation(invitation["id"], expires_at)
    if updated is None:
        raise NotFoundError("Invitation not found")

    invite_url = _invite_url(ctx, updated["id"])
    email_sent = await _send_invitation(ctx, updated, invite_url)
    logger.info(f"Resent invitation {updated['id']} to {updated['email']} (email sent: {email_sent})")
    return ToolResult.ok(
        f"Invitation resent to {updated['email']}; it now expires on {expires_at.date().isoformat()}.",
        data={**updated, "invite_url": invite_url, "email_sent": email_sent},
        sent_count=1,
    )


# ============================================================================
# Membership Handlers
# ============================================================================

def _require_member(ctx: ToolContext, arguments: dict):
    user_id = arguments.get("user_id")
    email = arguments.get("user_email")
    name = arguments.get("user_name")
    if is_missing(user_id) and is_missing(email) and is_missing(name):
        raise ValidationError("Provide user_id, user_email or user_name")
    member = resolve_member(ctx.team_context, user_id=user_id, email=email, name=name)
    if member is None:
        raise NotFoundError(
            f"Team member not found. Available team members: {formatters.available_members(ctx.team_context)}"
        )
    return member


@tool_handler("Failed to add project member")
async def handle_add_project_member(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Add an existing team member to a project."""
    project = await _find_project(ctx, arguments.get("project_id"), arguments.get("project_name"))
    member = _require_member(ctx, arguments)

    if await ctx.store.get_project_member(project["id"], member.user_id):
        raise ConflictError(f"{member.user_name} is already a member of this project")

    added = await ctx.store.add_project_member(project["id"], member.user_id)
    logger.info(f"Added {member.user_id} to project {project['id']}")
    return ToolResult.ok(f'Added {member.user_name} to project "{project["name"]}".', data=added)


@tool_handler("Failed to remove project member")
async def handle_remove_project_member(arguments: dict, ctx: ToolContext) -> ToolResult:
    project = await _find_project(ctx, arguments.get("project_id"), arguments.get("project_name"))
    member = _require_member(ctx, arguments)

    if not await ctx.store.remove_project_member(project["id"], member.user_id):
        raise NotFoundError(f'{member.user_name} is not a member of project "{project["name"]}"')
    logger.info(f"Removed {member.user_id} from project {project['id']}")
    return ToolResult.ok(f'Removed {member.user_name} from project "{project["name"]}".')


@tool_handler("Failed to list project members")
async def handle_list_project_members(arguments: dict, ctx: ToolContext) -> ToolResult:
    project = await _find_project(ctx, arguments.get("project_id"), arguments.get("project_name"))
    members = await ctx.store.list_project_members(project["id"])
    return ToolResult.ok(
        f'Project "{project["name"]}" has {len(members)} members',
        data={"project": formatters.project_ref(project), "members": members, "count": len(members)},
    )


@tool_handler("Failed to list team members")
async def handle_list_team_members(arguments: dict, ctx: ToolContext) -> ToolResult:
    members = [asdict(m) for m in ctx.team_context.members]
    return ToolResult.ok(f"Found {len(members)} team members", data={"members": members, "count": len(members)})


async def _find_team_member(ctx: ToolContext, arguments: dict) -> dict:
    member_id = arguments.get("member_id")
    if not is_missing(member_id):
        member = await ctx.store.get_team_member(str(member_id).strip())
        if member is None:
            raise NotFoundError("Team member not found")
        return member

    user_id = clean(arguments.get("user_id"))
    email = clean(arguments.get("email"))
    name = clean(arguments.get("name"))
    if not (user_id or email or name):
        raise ValidationError("Either member_id, user_id, email, or name must be provided")

    members = await ctx.store.list_team_members()
    if user_id:
        match = next((m for m in members if m["user_id"] == user_id), None)
    elif email:
        match = next((m for m in members if m["user_email"].lower() == email.lower()), None)
    else:
        match = next((m for m in members if name.lower() in m["user_name"].lower()), None)
    if match is None:
        raise NotFoundError("Team member not found")
    return match


@tool_handler("Failed to remove team member")
async def handle_remove_team_member(arguments: dict, ctx: ToolContext) -> ToolResult:
    """Remove someone from the team. Admin only; nobody can remove themselves."""
    actor = await ctx.store.get_team_member_by_user(ctx.actor_id) if ctx.actor_id else None
    if actor is None or actor["role"] != TeamRole.ADMIN.value:
        raise AuthorizationError("Only admins can remove team members")

    member = await _find_team_member(ctx, arguments)
    if member["user_id"] == ctx.actor_id:
        raise ConflictError("Cannot remove yourself from the team")

    if not await ctx.store.delete_team_member(member["id"]):
        raise NotFoundError("Team member not found")
    logger.info(f"Removed member {member['user_id']} from team {ctx.team_id}")
    return ToolResult.ok(
        f'Team member "{member["user_name"]}" has been removed successfully.',
        data={"id": member["id"], "user_id": member["user_id"]},
    )


@tool_handler("Failed to get team stats")
async def handle_get_team_stats(arguments: dict, ctx: ToolContext) -> ToolResult:
    stats = await ctx.store.get_stats()
    return ToolResult.ok(
        f"Team has {stats['issues']} issues, {stats['projects']} projects and {stats['members']} members",
        data=stats,
    )
