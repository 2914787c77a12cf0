"""MCP adapter: exposes the workflow tools over stdio.

Tool schemas come from the pydantic input models. Calls are dispatched in a
worker thread so blocking ledger and HTTP calls never stall the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from hr_airdrop_orchestrator import __version__
from hr_airdrop_orchestrator.orchestrator.workflow.operations import ToolResult
from hr_airdrop_orchestrator.orchestrator.workflow.orchestrator import AirdropOrchestrator

logger = logging.getLogger(__name__)

SERVER_NAME = "hr-airdrop-mcp-server"


class ToolCallFailed(Exception):
    """Raised inside `call_tool` so the MCP layer marks the result with isError."""

    def __init__(self, result: ToolResult) -> None:
        super().__init__(_render(result))
        self.result = result


def _render(result: ToolResult) -> str:
    if result.is_error and result.error_kind:
        return f"[{result.error_kind}] {result.text}"
    return result.text


def list_tool_definitions(orchestrator: AirdropOrchestrator) -> list[Tool]:
    return [
        Tool(name=op.name, description=op.description, inputSchema=op.input_schema())
        for op in orchestrator.operations
    ]


async def call_tool_text(
    orchestrator: AirdropOrchestrator, name: str, arguments: dict[str, Any] | None
) -> list[TextContent]:
    """Run one tool call; raise `ToolCallFailed` for error results."""

    result = await asyncio.to_thread(orchestrator.dispatch, name, arguments or {})
    if result.is_error:
        raise ToolCallFailed(result)

    content = [TextContent(type="text", text=result.text)]
    if name == "get_state":
        content.append(
            TextContent(type="text", text=json.dumps(result.data, indent=2, default=str))
        )
    return content


def build_server(orchestrator: AirdropOrchestrator) -> Server:
    server: Server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return list_tool_definitions(orchestrator)

    # Arguments are validated by the pydantic input models in dispatch.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        return await call_tool_text(orchestrator, name, arguments)

    return server


async def serve_stdio(orchestrator: AirdropOrchestrator) -> None:
    server = build_server(orchestrator)
    logger.info("HR Airdrop MCP server running on stdio", extra={"server_version": __version__})
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
