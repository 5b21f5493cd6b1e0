"""
MCP Protocol Engine
===================

Builds one Model Context Protocol server per session. Each engine has its own
discovery and invocation handlers, closed over the capability adapter of the
backend instance resolved for that session's credential, so a later
connection can never rebind an earlier session's dispatch target.
"""

import asyncio
import json
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple, Union

from mcp.server import Server
from mcp.server.models import InitializationOptions
from mcp.types import CallToolResult, EmbeddedResource, ImageContent, TextContent, Tool

from sse_bridge.config.logging import get_logger
from sse_bridge.core.backends.capabilities import CapabilityAdapter
from sse_bridge.core.errors import InvocationError

logger = get_logger(__name__)

ContentBlock = Union[TextContent, ImageContent, EmbeddedResource]
ToolOutput = Union[List[ContentBlock], Tuple[List[ContentBlock], Dict[str, Any]]]


def to_content_blocks(name: str, result: Any) -> List[ContentBlock]:
    """
    Map an adapter's opaque result onto MCP tool content.

    Args:
        name: Operation that produced the result
        result: Value returned by the adapter's ``invoke``

    Returns:
        Content blocks for the tool call response

    Raises:
        InvocationError: If the result is an MCP error result
    """
    if isinstance(result, Mapping) and "content" in result:
        call_result = CallToolResult.model_validate(dict(result))
        if call_result.isError:
            text = "; ".join(
                block.text for block in call_result.content if isinstance(block, TextContent)
            )
            raise InvocationError(name, text or f"Operation '{name}' reported an error")
        return list(call_result.content)  # type: ignore[arg-type]

    if isinstance(result, list) and all(
        isinstance(item, (TextContent, ImageContent, EmbeddedResource)) for item in result
    ):
        return result

    if isinstance(result, str):
        return [TextContent(type="text", text=result)]

    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


def to_tool_output(name: str, result: Any) -> ToolOutput:
    """
    Map an adapter's result onto content plus structured content.

    Mapping results double as structured content, which the protocol layer
    validates against an operation's ``outputSchema``. A tool-result-shaped
    mapping contributes its own ``structuredContent``, if any.
    """
    blocks = to_content_blocks(name, result)
    if not isinstance(result, Mapping):
        return blocks

    structured = result.get("structuredContent") if "content" in result else result
    if isinstance(structured, Mapping):
        return blocks, dict(structured)
    return blocks


class ProtocolEngine:
    """MCP server bound to a single capability adapter."""

    def __init__(
        self,
        adapter: CapabilityAdapter,
        name: str = "sse-tool-bridge",
        version: str = "1.1.0",
        invocation_timeout: Optional[float] = None,
    ) -> None:
        self.adapter = adapter
        self.name = name
        self.version = version
        self.invocation_timeout = invocation_timeout
        self.logger: Any = logger.bind(component="protocol_engine")
        self.server: Server = Server(name, version=version)
        self._setup_tools()

    def bind_session(self, session_id: str) -> None:
        """Tag this engine's log lines with the session it serves."""
        self.logger = self.logger.bind(session_id=session_id)

    def _setup_tools(self) -> None:
        """Bind discovery and invocation handlers to this engine's adapter."""

        @self.server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            """List the adapter's operations, unmodified."""
            return await self.list_tools()

        @self.server.call_tool(validate_input=False)
        async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> ToolOutput:
            """Forward the call to the adapter; failures become error results."""
            return await self.call_tool(name, arguments)

    async def list_tools(self) -> List[Tool]:
        return [
            Tool.model_validate(operation.definition)
            for operation in self.adapter.list_operations()
        ]

    async def call_tool(self, name: str, arguments: Any) -> ToolOutput:
        self.logger.info("Tool called", tool=name)
        try:
            result = await asyncio.wait_for(
                self.adapter.invoke(name, arguments), timeout=self.invocation_timeout
            )
        except asyncio.TimeoutError:
            self.logger.warning("Tool invocation timed out", tool=name)
            raise InvocationError(
                name, f"Operation '{name}' timed out after {self.invocation_timeout}s"
            )
        except Exception as e:
            self.logger.warning(
                "Tool invocation failed", tool=name, error_type=type(e).__name__, error=str(e)
            )
            raise
        return to_tool_output(name, result)

    def create_initialization_options(self) -> InitializationOptions:
        return self.server.create_initialization_options()

    async def run(self, read_stream: Any, write_stream: Any) -> None:
        """Serve one session until its incoming stream is closed."""
        await self.server.run(
            read_stream,
            write_stream,
            self.create_initialization_options(),
            raise_exceptions=False,
        )
