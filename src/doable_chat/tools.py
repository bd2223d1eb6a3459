"""Tool declarations for the chat assistant.

This module provides the definitive list of tools used by both the HTTP
chat orchestrator (Anthropic Messages API) and the MCP stdio server, so the
two surfaces expose identical functionality.
"""
from typing import Any

from mcp.types import Tool

PRIORITIES = ["none", "low", "medium", "high", "urgent"]
PROJECT_STATUSES = ["active", "completed", "canceled"]
ROLES = ["admin", "developer", "viewer"]


def _issue_fields(required_note: bool) -> dict[str, Any]:
    req = " (REQUIRED)" if required_note else ""
    return {
        "title": {"type": "string", "description": f"Issue title{req}"},
        "description": {"type": "string", "description": "Issue description"},
        "project_id": {
            "type": "string",
            "description": f"Project id, key (e.g. \"WEB\") or name{req}. Ask the user if unknown.",
        },
        "workflow_state_id": {
            "type": "string",
            "description": f"Workflow state id or name, e.g. \"Todo\", \"In Progress\"{req}",
        },
        "priority": {
            "type": "string",
            "enum": PRIORITIES,
            "description": f"Issue priority{req}. Never guess; ask the user.",
        },
        "assignee_id": {
            "type": ["string", "null"],
            "description": "Assignee user id or name; null or \"unassigned\" for nobody",
        },
        "estimate": {"type": ["number", "null"], "description": "Estimate in points"},
        "label_ids": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Label ids or names, e.g. [\"Bug\", \"Feature\"]",
        },
    }


def _issue_update_fields() -> dict[str, Any]:
    fields = _issue_fields(required_note=False)
    fields.pop("title")
    return {
        "issue_id": {"type": "string", "description": "Id of the issue to update"},
        "title": {"type": "string", "description": "Title (or part of it) of the issue to find, if issue_id is not given"},
        "new_title": {"type": "string", "description": "New title"},
        **fields,
    }


def _issue_lookup_fields(verb: str) -> dict[str, Any]:
    return {
        "issue_id": {"type": "string", "description": f"Id of the issue to {verb}"},
        "title": {"type": "string", "description": f"Title (or part of it) of the issue to {verb}, if issue_id is not given"},
    }


def _project_fields(required_note: bool) -> dict[str, Any]:
    req = " (REQUIRED)" if required_note else ""
    return {
        "name": {"type": "string", "description": f"Project name{req}"},
        "key": {"type": "string", "description": f"3-character project key, e.g. \"WEB\"{req}"},
        "description": {"type": "string", "description": "Project description"},
        "color": {"type": "string", "description": "Hex color, defaults to #6366f1"},
        "icon": {"type": "string", "description": "Icon name"},
        "lead_id": {"type": "string", "description": "Project lead user id or name"},
        "status": {"type": "string", "enum": PROJECT_STATUSES, "description": "Defaults to active"},
    }


def _project_lookup_fields() -> dict[str, Any]:
    return {
        "project_id": {"type": "string", "description": "Project id"},
        "project_name": {"type": "string", "description": "Project name or key, if project_id is not given"},
    }


def _member_lookup_fields() -> dict[str, Any]:
    return {
        "user_id": {"type": "string", "description": "User id"},
        "user_email": {"type": "string", "description": "User email"},
        "user_name": {"type": "string", "description": "User name (or part of it)"},
    }


def _invitation_fields() -> dict[str, Any]:
    return {
        "email": {"type": "string", "description": "Email address to invite"},
        "role": {"type": "string", "enum": ROLES, "description": "Team role, defaults to developer"},
    }


def get_tools() -> list[Tool]:
    """Get the list of all chat assistant tools."""
    return [
        # ============================================================================
        # Issue Tools
        # ============================================================================
        Tool(
            name="create_issue",
            description="Create a single issue. For 2+ issues use create_issues. "
                        "title, project_id, workflow_state_id and priority are REQUIRED: "
                        "if any is missing, ask the user instead of guessing. "
                        "Fails if an issue with the same title (any case) already exists.",
            inputSchema={
                "type": "object",
                "properties": _issue_fields(required_note=True),
                "required": ["title", "project_id", "workflow_state_id", "priority"],
            },
        ),
        Tool(
            name="create_issues",
            description="Create several issues at once. Every issue needs title, project_id, "
                        "workflow_state_id and priority. Nothing is created if any issue misses "
                        "a required field or duplicates an existing title.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issues": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "properties": _issue_fields(required_note=True),
                            "required": ["title", "project_id", "workflow_state_id", "priority"],
                        },
                    }
                },
                "required": ["issues"],
            },
        ),
        Tool(
            name="update_issue",
            description="Update an existing issue by id or title. Use workflow state names, "
                        "assignee names and label names. label_ids replaces all labels.",
            inputSchema={"type": "object", "properties": _issue_update_fields()},
        ),
        Tool(
            name="update_issues",
            description="Update several issues at once, e.g. \"move #1, #2 and #3 to Done\". "
                        "Updates are applied in order.",
            inputSchema={
                "type": "object",
                "properties": {
                    "updates": {
                        "type": "array",
                        "minItems": 1,
                        "items": {"type": "object", "properties": _issue_update_fields()},
                    }
                },
                "required": ["updates"],
            },
        ),
        Tool(
            name="delete_issue",
            description="Delete an issue by id or title. Fails without deleting anything "
                        "when the title matches several issues.",
            inputSchema={"type": "object", "properties": _issue_lookup_fields("delete")},
        ),
        Tool(
            name="delete_issues",
            description="Delete several issues at once by id or title.",
            inputSchema={
                "type": "object",
                "properties": {
                    "issues": {
                        "type": "array",
                        "minItems": 1,
                        "items": {"type": "object", "properties": _issue_lookup_fields("delete")},
                    }
                },
                "required": ["issues"],
            },
        ),
        Tool(
            name="get_issue",
            description="Get details of a specific issue by id or title.",
            inputSchema={"type": "object", "properties": _issue_lookup_fields("get")},
        ),
        Tool(
            name="list_issues",
            description="List ALL issues of the team, or the first `limit` when requested.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {"type": ["integer", "null"], "description": "Maximum number of issues (omit for all)"}
                },
            },
        ),
        # ============================================================================
        # Project Tools
        # ============================================================================
        Tool(
            name="create_project",
            description="Create a single project. name and a 3-character key are REQUIRED; "
                        "ask the user if either is missing. For 2+ projects use create_projects.",
            inputSchema={
                "type": "object",
                "properties": _project_fields(required_note=True),
                "required": ["name", "key"],
            },
        ),
        Tool(
            name="create_projects",
            description="Create several projects at once. Each needs a name and a unique 3-character key.",
            inputSchema={
                "type": "object",
                "properties": {
                    "projects": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "properties": _project_fields(required_note=True),
                            "required": ["name", "key"],
                        },
                    }
                },
                "required": ["projects"],
            },
        ),
        Tool(
            name="update_project",
            description="Update a project by id or name: status, name, description, color, icon or lead.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": {"type": "string", "description": "Id of the project to update"},
                    "name": {"type": "string", "description": "Name of the project to find, if project_id is not given"},
                    "new_name": {"type": "string", "description": "New project name"},
                    **{k: v for k, v in _project_fields(required_note=False).items() if k not in ("name", "key")},
                },
            },
        ),
        Tool(
            name="delete_project",
            description="Delete a project by id or name. This permanently removes the project and all its issues.",
            inputSchema={
                "type": "object",
                "properties": {
                    "project_id": {"type": "string", "description": "Id of the project to delete"},
                    "name": {"type": "string", "description": "Name of the project to delete, if project_id is not given"},
                },
            },
        ),
        Tool(
            name="list_projects",
            description="List all projects of the team with issue and member counts.",
            inputSchema={"type": "object", "properties": {}},
        ),
        # ============================================================================
        # Invitation Tools
        # ============================================================================
        Tool(
            name="invite_team_member",
            description="Invite one person to the team by email.",
            inputSchema={"type": "object", "properties": _invitation_fields(), "required": ["email"]},
        ),
        Tool(
            name="invite_team_members",
            description="Invite several people at once. Each address succeeds or fails independently.",
            inputSchema={
                "type": "object",
                "properties": {
                    "invitations": {
                        "type": "array",
                        "minItems": 1,
                        "items": {"type": "object", "properties": _invitation_fields(), "required": ["email"]},
                    }
                },
                "required": ["invitations"],
            },
        ),
        Tool(
            name="revoke_invitation",
            description="Revoke a pending team invitation by email or invitation id.",
            inputSchema={
                "type": "object",
                "properties": {
                    "invitation_id": {"type": "string", "description": "Id of the invitation"},
                    "email": {"type": "string", "description": "Email of the pending invitation, if invitation_id is not given"},
                },
            },
        ),
        Tool(
            name="resend_invitation",
            description="Resend an invitation email and extend its expiry by 7 days.",
            inputSchema={
                "type": "object",
                "properties": {
                    "invitation_id": {"type": "string", "description": "Id of the invitation"},
                    "email": {"type": "string", "description": "Email of the invitation, if invitation_id is not given"},
                },
            },
        ),
        # ============================================================================
        # Membership Tools
        # ============================================================================
        Tool(
            name="add_project_member",
            description="Add a team member to a project. The person must already be on the team.",
            inputSchema={"type": "object", "properties": {**_project_lookup_fields(), **_member_lookup_fields()}},
        ),
        Tool(
            name="remove_project_member",
            description="Remove a member from a project.",
            inputSchema={"type": "object", "properties": {**_project_lookup_fields(), **_member_lookup_fields()}},
        ),
        Tool(
            name="list_project_members",
            description="List the members of a project.",
            inputSchema={"type": "object", "properties": _project_lookup_fields()},
        ),
        Tool(
            name="list_team_members",
            description="List all team members with their roles.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="remove_team_member",
            description="Remove a member from the team by member id, user id, email or name. Admins only.",
            inputSchema={
                "type": "object",
                "properties": {
                    "member_id": {"type": "string", "description": "Team member id"},
                    "user_id": {"type": "string", "description": "User id of the member"},
                    "email": {"type": "string", "description": "Email of the member"},
                    "name": {"type": "string", "description": "Name of the member"},
                },
            },
        ),
        Tool(
            name="get_team_stats",
            description="Get issue, project and member counts, and issues per workflow state.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def to_anthropic_tools(tools: list[Tool] | None = None) -> list[dict[str, Any]]:
    """Convert tool declarations to the Anthropic Messages API format."""
    return [
        {"name": tool.name, "description": tool.description, "input_schema": tool.inputSchema}
        for tool in (tools if tools is not None else get_tools())
    ]
