"""Route tool calls to their handlers."""
import logging
from typing import Any, Optional

from . import handlers
from .handlers import ToolContext
from .results import ToolResult
from .validators import ALIASES, PROJECT_ALIASES, normalize_aliases

logger = logging.getLogger("doable-chat.dispatch")

HANDLERS = {
    "create_issue": handlers.handle_create_issue,
    "create_issues": handlers.handle_create_issues,
    "update_issue": handlers.handle_update_issue,
    "update_issues": handlers.handle_update_issues,
    "delete_issue": handlers.handle_delete_issue,
    "delete_issues": handlers.handle_delete_issues,
    "get_issue": handlers.handle_get_issue,
    "list_issues": handlers.handle_list_issues,
    "create_project": handlers.handle_create_project,
    "create_projects": handlers.handle_create_projects,
    "update_project": handlers.handle_update_project,
    "delete_project": handlers.handle_delete_project,
    "list_projects": handlers.handle_list_projects,
    "invite_team_member": handlers.handle_invite_team_member,
    "invite_team_members": handlers.handle_invite_team_members,
    "revoke_invitation": handlers.handle_revoke_invitation,
    "resend_invitation": handlers.handle_resend_invitation,
    "add_project_member": handlers.handle_add_project_member,
    "remove_project_member": handlers.handle_remove_project_member,
    "list_project_members": handlers.handle_list_project_members,
    "list_team_members": handlers.handle_list_team_members,
    "remove_team_member": handlers.handle_remove_team_member,
    "get_team_stats": handlers.handle_get_team_stats,
}

# Issue tools accept the issue alias set; "status" means workflow state there
ISSUE_TOOLS = frozenset(
    {"create_issue", "create_issues", "update_issue", "update_issues",
     "delete_issue", "delete_issues", "get_issue", "list_issues"}
)


def alias_table(name: str) -> dict[str, str]:
    return ALIASES if name in ISSUE_TOOLS else PROJECT_ALIASES


async def execute_tool(name: str, arguments: Optional[dict[str, Any]], ctx: ToolContext) -> ToolResult:
    """
    Execute a tool by name.

    Args:
        name: Tool name
        arguments: Raw arguments from the model; aliases are normalised here
        ctx: Per-turn tool context

    Returns:
        ToolResult; unknown tools produce a failed result
    """
    handler = HANDLERS.get(name)
    if handler is None:
        logger.warning(f"Unknown tool requested: {name}")
        return ToolResult.fail(f"Unknown tool: {name}")

    normalized = normalize_aliases(arguments or {}, alias_table(name))
    logger.info(f"Tool call: {name} with arguments: {normalized}")
    result = await handler(normalized, ctx)
    if result.success:
        logger.info(f"Tool {name} succeeded: {result.message}")
    else:
        logger.warning(f"Tool {name} failed: {result.error}")
    return result
