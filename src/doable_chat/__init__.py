"""Doable chat tool layer.

Turns natural-language instructions into team-scoped tracker operations:
- context: per-request snapshot of a team's projects, states, labels and members
- resolvers / validators: fuzzy reference resolution and required-field gates
- handlers: one coroutine per tool, each returning a ToolResult
- orchestrator: bounded Anthropic tool-use loop streamed as server-sent events
- server: the same tools over MCP stdio
"""
