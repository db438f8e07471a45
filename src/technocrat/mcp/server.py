"""Technocrat MCP server over HTTP.

Two surfaces share one :class:`~technocrat.mcp.handler.Handler`:

* a small REST API under ``/mcp/v1/`` plus ``/health``;
* a standard streamable-HTTP MCP endpoint at ``/mcp`` served by FastMCP.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from mcp.server.fastmcp import FastMCP
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.transport_security import TransportSecuritySettings
from mcp.types import ContentBlock, GetPromptResult, PromptMessage, TextContent
from mcp.types import Prompt as MCPPrompt
from mcp.types import PromptArgument as MCPPromptArgument
from mcp.types import Resource as MCPResource
from mcp.types import Tool as MCPTool
from pydantic import AnyUrl
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from technocrat.mcp.errors import TemplateError
from technocrat.mcp.handler import (
    SERVER_NAME,
    Handler,
    HandlerError,
    NotFoundError,
    initialize_result,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
API_PREFIX = "/mcp/v1"


# ── REST API ─────────────────────────────────────────────────────────


class BadRequest(Exception):
    """Raised when a request body is not a JSON object."""


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BadRequest(f"Invalid request body: {e}") from e
    if not isinstance(body, dict):
        raise BadRequest("Invalid request body: expected a JSON object")
    return body


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _string_field(body: dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str):
        raise BadRequest(f"Missing {key}")
    return value


def _arguments(body: dict[str, Any]) -> dict[str, Any]:
    arguments = body.get("arguments")
    return arguments if isinstance(arguments, dict) else {}


def build_routes(handler: Handler) -> list[Route]:
    """Build the REST routes backed by *handler*."""

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "healthy"})

    async def initialize(request: Request) -> JSONResponse:
        return JSONResponse(initialize_result())

    async def tools_list(request: Request) -> JSONResponse:
        return JSONResponse({"tools": [tool.to_dict() for tool in handler.list_tools()]})

    async def tools_call(request: Request) -> JSONResponse:
        try:
            body = await _json_body(request)
            name = _string_field(body, "name")
            result = handler.call_tool(name, _arguments(body))
        except (BadRequest, HandlerError) as e:
            return _error(str(e), 400)
        return JSONResponse(result)

    async def resources_list(request: Request) -> JSONResponse:
        return JSONResponse(
            {"resources": [resource.to_dict() for resource in handler.list_resources()]}
        )

    async def resources_read(request: Request) -> JSONResponse:
        try:
            body = await _json_body(request)
            uri = _string_field(body, "uri")
            contents = handler.read_resource(uri)
        except BadRequest as e:
            return _error(str(e), 400)
        except NotFoundError as e:
            return _error(str(e), 404)
        return JSONResponse({"contents": contents})

    async def prompts_list(request: Request) -> JSONResponse:
        return JSONResponse(
            {"prompts": [prompt.to_dict() for prompt in handler.list_prompts()]}
        )

    async def prompts_get(request: Request) -> JSONResponse:
        try:
            body = await _json_body(request)
            name = _string_field(body, "name")
            result = handler.get_prompt(name, _arguments(body))
        except BadRequest as e:
            return _error(str(e), 400)
        except NotFoundError as e:
            return _error(str(e), 404)
        except TemplateError as e:
            logger.warning("Prompt %s failed: %s", name, e)
            return _error(str(e), 422)
        return JSONResponse(result)

    return [
        Route("/health", health, methods=["GET"]),
        Route(f"{API_PREFIX}/initialize", initialize, methods=["POST"]),
        Route(f"{API_PREFIX}/tools/list", tools_list, methods=["GET"]),
        Route(f"{API_PREFIX}/tools/call", tools_call, methods=["POST"]),
        Route(f"{API_PREFIX}/resources/list", resources_list, methods=["GET"]),
        Route(f"{API_PREFIX}/resources/read", resources_read, methods=["POST"]),
        Route(f"{API_PREFIX}/prompts/list", prompts_list, methods=["GET"]),
        Route(f"{API_PREFIX}/prompts/get", prompts_get, methods=["POST"]),
    ]


# ── Streamable HTTP MCP ──────────────────────────────────────────────


class HandlerFastMCP(FastMCP):
    """FastMCP subclass whose tools, resources and prompts come from a Handler.

    Nothing is registered through FastMCP decorators; every protocol
    request is answered by the wrapped handler so both HTTP surfaces stay
    consistent.
    """

    def __init__(self, *args: Any, handler: Handler, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._handler = handler

    async def list_tools(self) -> list[MCPTool]:
        return [
            MCPTool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
            for tool in self._handler.list_tools()
        ]

    async def call_tool(
        self, name: str, arguments: dict[str, Any]
    ) -> Sequence[ContentBlock] | dict[str, Any]:
        result = self._handler.call_tool(name, arguments)
        return [TextContent(type="text", text=json.dumps(result))]

    async def list_resources(self) -> list[MCPResource]:
        return [
            MCPResource(
                uri=AnyUrl(resource.uri),
                name=resource.name,
                description=resource.description,
                mimeType=resource.mime_type,
            )
            for resource in self._handler.list_resources()
        ]

    async def read_resource(self, uri: AnyUrl | str) -> Iterable[ReadResourceContents]:
        contents = self._handler.read_resource(str(uri))
        return [
            ReadResourceContents(content=contents["text"], mime_type=contents["mimeType"])
        ]

    async def list_prompts(self) -> list[MCPPrompt]:
        return [
            MCPPrompt(
                name=prompt.name,
                description=prompt.description,
                arguments=[
                    MCPPromptArgument(
                        name=argument.name,
                        description=argument.description,
                        required=argument.required,
                    )
                    for argument in prompt.arguments
                ],
            )
            for prompt in self._handler.list_prompts()
        ]

    async def get_prompt(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> GetPromptResult:
        try:
            result = self._handler.get_prompt(name, arguments)
        except (HandlerError, TemplateError) as e:
            logger.warning("Prompt %s failed: %s", name, e)
            raise ValueError(str(e)) from e

        prompt = next(p for p in self._handler.list_prompts() if p.name == name)
        return GetPromptResult(
            description=prompt.description,
            messages=[
                PromptMessage(
                    role=message["role"],
                    content=TextContent(type="text", text=message["content"]),
                )
                for message in result["messages"]
            ],
        )


def _build_mcp_app(handler: Handler, host: str = DEFAULT_HOST) -> FastMCP:
    """Build the FastMCP application that delegates to *handler*.

    Args:
        handler: The registry answering protocol requests.
        host: The bind host address, used to configure allowed Host headers.
    """
    allowed_hosts = ["127.0.0.1:*", "localhost:*", "[::1]:*"]
    if host not in ("127.0.0.1", "localhost", "::1"):
        allowed_hosts.append(f"{host}:*")

    transport_security = TransportSecuritySettings(
        enable_dns_rebinding_protection=True,
        allowed_hosts=allowed_hosts,
        allowed_origins=[f"http://{h}" for h in allowed_hosts],
    )

    return HandlerFastMCP(
        SERVER_NAME,
        handler=handler,
        stateless_http=True,
        transport_security=transport_security,
    )


def build_app(handler: Handler | None = None, host: str = DEFAULT_HOST) -> Starlette:
    """Build the Starlette application serving both HTTP surfaces.

    The streamable-HTTP routes are merged into the same router as the REST
    routes so a wrong method on a REST path yields 405 rather than falling
    through to the MCP app.
    """
    handler = handler or Handler()
    mcp_app = _build_mcp_app(handler, host)
    http_app = mcp_app.streamable_http_app()
    session_mgr = mcp_app.session_manager

    @asynccontextmanager
    async def _lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_mgr.run():
            yield

    return Starlette(
        routes=[*build_routes(handler), *http_app.routes],
        lifespan=_lifespan,
    )


class TechnocratMCPServer:
    """Runs the HTTP server in the foreground until interrupted."""

    def __init__(
        self,
        handler: Handler | None = None,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
    ) -> None:
        self.handler = handler or Handler()
        self.host = host
        self.port = port

    def serve(self) -> None:
        """Start uvicorn and block until it exits."""
        app = build_app(self.handler, self.host)
        config = uvicorn.Config(
            app=app,
            host=self.host,
            port=self.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        logger.info("MCP server listening on %s:%d", self.host, self.port)
        server.run()
        logger.info("MCP server stopped")
