"""MCP prompt server for Technocrat."""

from technocrat.mcp.context import WorkspaceContext, detect_workspace_context
from technocrat.mcp.errors import (
    TemplateError,
    TemplateErrorKind,
    TemplateExecuteError,
    TemplateParseError,
)
from technocrat.mcp.handler import Handler, HandlerError, NotFoundError, ToolError
from technocrat.mcp.server import TechnocratMCPServer, build_app
from technocrat.mcp.stdio import StdioServer

__all__ = [
    "Handler",
    "HandlerError",
    "NotFoundError",
    "StdioServer",
    "TechnocratMCPServer",
    "TemplateError",
    "TemplateErrorKind",
    "TemplateExecuteError",
    "TemplateParseError",
    "ToolError",
    "WorkspaceContext",
    "build_app",
    "detect_workspace_context",
]
