"""Doable MCP Server - expose the chat tools to desktop AI assistants."""
import os
import sys
import json
import asyncio
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from doable_core import crud
from doable_core.config import get_settings
from doable_core.database import SessionLocal
from doable_core.email import send_invitation_email

from . import tools
from .context import load_team_context
from .dispatch import execute_tool
from .handlers import ToolContext
from .store import TeamStore


# Configure logging to stderr; stdout carries the MCP protocol
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr,
    force=True
)
logger = logging.getLogger("doable-chat")

# Scope: every call acts inside this team as this user
TEAM_ID = os.getenv("DOABLE_TEAM_ID")
USER_ID = os.getenv("DOABLE_USER_ID")

logger.info(f"MCP Server starting for team {TEAM_ID} as user {USER_ID}")


# MCP Server instance
app = Server("doable-mcp")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available MCP tools for team issue tracking."""
    return tools.get_tools()


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle MCP tool calls by delegating to shared handlers."""
    logger.info(f"Tool call: {name} with arguments: {arguments}")

    if not TEAM_ID:
        return [TextContent(type="text", text="Error: DOABLE_TEAM_ID is not set")]

    settings = get_settings()
    db = SessionLocal()
    try:
        user = crud.get_user(db, USER_ID) if USER_ID else None
        ctx = ToolContext(
            team_id=TEAM_ID,
            actor_id=user.id if user else None,
            actor_name=user.display_name if user else None,
            actor_email=user.email if user else None,
            team_context=load_team_context(db, TEAM_ID),
            store=TeamStore(db, TEAM_ID),
            mailer=send_invitation_email,
            app_url=settings.app_url,
            invitation_ttl_days=settings.invitation_ttl_days,
            default_project_color=settings.default_project_color,
        )
        result = await execute_tool(name, arguments or {}, ctx)
        return [TextContent(type="text", text=json.dumps(result.to_payload(), indent=2))]

    except Exception as e:
        # Handlers never raise; this covers context loading and session errors
        logger.error(f"Unexpected error during {name} call: {type(e).__name__}: {e}", exc_info=True)
        return [TextContent(type="text", text=f"Error: {type(e).__name__}: {str(e)}")]

    finally:
        db.close()


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
