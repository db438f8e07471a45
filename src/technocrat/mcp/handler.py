"""MCP registry of tools, resources and prompts."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from technocrat import __version__
from technocrat.mcp.errors import TemplateError
from technocrat.mcp.gotemplate import compile_template
from technocrat.mcp.prompts import build_prompt_message, parse_command_template
from technocrat.mcp.template_processor import (
    BASE_FUNCTIONS,
    context_functions,
    prepare_template_content,
)
from technocrat.templates import get_command_template, list_commands

logger = logging.getLogger(__name__)

SERVER_NAME = "technocrat"
PROTOCOL_VERSION = "2024-11-05"
COMMAND_PROMPT_PREFIX = "tchncrt."
USER_INPUT_ARGUMENT = "user_input"

ToolHandler = Callable[[dict[str, Any]], Any]
PromptHandler = Callable[[dict[str, Any]], dict[str, Any]]


class HandlerError(Exception):
    """Base class for registry errors."""


class NotFoundError(HandlerError):
    """Raised when a tool, resource or prompt name is not registered."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} not found: {name}")


class ToolError(HandlerError):
    """Raised when a tool rejects its arguments."""


@dataclass(frozen=True)
class Tool:
    """A callable tool exposed to MCP clients."""

    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (handler excluded)."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class Resource:
    """A readable resource identified by URI."""

    uri: str
    name: str
    description: str
    mime_type: str = "text/plain"
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (content excluded)."""
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True)
class PromptArgument:
    """A named argument accepted by a prompt."""

    name: str
    description: str
    required: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }


@dataclass(frozen=True)
class Prompt:
    """A named prompt rendered on request."""

    name: str
    description: str
    handler: PromptHandler
    arguments: tuple[PromptArgument, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (handler excluded)."""
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [argument.to_dict() for argument in self.arguments],
        }


def user_message(content: str) -> dict[str, Any]:
    """Wrap *content* in the prompt result shape."""
    return {"messages": [{"role": "user", "content": content}]}


def initialize_result() -> dict[str, Any]:
    """Result payload for the MCP ``initialize`` handshake."""
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "serverInfo": {"name": SERVER_NAME, "version": __version__},
        "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
    }


def _echo(args: dict[str, Any]) -> dict[str, Any]:
    message = args.get("message")
    if not isinstance(message, str):
        raise ToolError("message must be a string")
    return {"echoed": message}


def _system_info(args: dict[str, Any]) -> dict[str, Any]:
    return {"server": SERVER_NAME, "version": __version__, "status": "running"}


def _welcome(args: dict[str, Any]) -> dict[str, Any]:
    name = args.get("name")
    if not isinstance(name, str) or not name:
        name = "there"
    return user_message(f"Hello, {name}! Welcome to Technocrat MCP Server.")


class Handler:
    """Registry that answers MCP list/call/read/get requests.

    Registries are filled during construction and treated as read-only
    afterwards; listings are sorted by name so clients see a stable order.

    Args:
        register_defaults: Register the built-in tools, resource and
            welcome prompt.
        register_commands: Register one prompt per bundled command
            template.
    """

    def __init__(
        self, register_defaults: bool = True, register_commands: bool = True
    ) -> None:
        self._tools: dict[str, Tool] = {}
        self._resources: dict[str, Resource] = {}
        self._prompts: dict[str, Prompt] = {}

        if register_defaults:
            self._register_defaults()
        if register_commands:
            self.register_command_prompts()

    # ── Registration ─────────────────────────────────────────────────

    def register_tool(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def register_resource(self, resource: Resource) -> None:
        self._resources[resource.uri] = resource

    def register_prompt(self, prompt: Prompt) -> None:
        self._prompts[prompt.name] = prompt

    def _register_defaults(self) -> None:
        self.register_tool(
            Tool(
                name="echo",
                description="Echoes back the input message",
                input_schema={
                    "type": "object",
                    "properties": {
                        "message": {
                            "type": "string",
                            "description": "The message to echo",
                        }
                    },
                    "required": ["message"],
                },
                handler=_echo,
            )
        )
        self.register_tool(
            Tool(
                name="system_info",
                description="Returns basic system information",
                input_schema={"type": "object", "properties": {}},
                handler=_system_info,
            )
        )
        self.register_resource(
            Resource(
                uri="info://server",
                name="Server Information",
                description="Information about the Technocrat MCP server",
                mime_type="application/json",
                text=(
                    "This is the Technocrat MCP server, "
                    "a Spec Driven Development Framework."
                ),
            )
        )
        self.register_prompt(
            Prompt(
                name="welcome",
                description="A welcome message for new users",
                handler=_welcome,
                arguments=(PromptArgument("name", "User's name"),),
            )
        )

    def register_command_prompts(self) -> int:
        """Register a ``tchncrt.<command>`` prompt per bundled command template.

        A command whose template cannot be loaded or does not parse is
        logged and skipped; the others still register.

        Returns:
            Number of command prompts registered.
        """
        # Parse-check against the full function set used at render time.
        functions = {**BASE_FUNCTIONS, **context_functions("", "")}
        registered = 0
        for command in list_commands():
            content = get_command_template(command)
            if content is None:
                logger.warning("Command template %s could not be loaded", command)
                continue
            description, workflow = parse_command_template(content)
            try:
                compile_template(prepare_template_content(workflow), functions)
            except TemplateError as e:
                logger.warning("Skipping command prompt %s: %s", command, e)
                continue
            self.register_prompt(self._command_prompt(command, description, workflow))
            registered += 1
        logger.debug("Registered %d command prompts", registered)
        return registered

    @staticmethod
    def _command_prompt(command: str, description: str, workflow: str) -> Prompt:
        def handler(args: dict[str, Any]) -> dict[str, Any]:
            user_input = args.get(USER_INPUT_ARGUMENT)
            if not isinstance(user_input, str):
                user_input = ""
            return user_message(build_prompt_message(command, workflow, user_input))

        return Prompt(
            name=COMMAND_PROMPT_PREFIX + command,
            description=description,
            handler=handler,
            arguments=(
                PromptArgument(
                    USER_INPUT_ARGUMENT,
                    "Optional user input to guide the workflow",
                ),
            ),
        )

    # ── Queries ──────────────────────────────────────────────────────

    def list_tools(self) -> list[Tool]:
        return [self._tools[name] for name in sorted(self._tools)]

    def list_resources(self) -> list[Resource]:
        return [self._resources[uri] for uri in sorted(self._resources)]

    def list_prompts(self) -> list[Prompt]:
        return [self._prompts[name] for name in sorted(self._prompts)]

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Run tool *name*.

        Raises:
            NotFoundError: If no such tool is registered.
            ToolError: If the tool rejects its arguments.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise NotFoundError("tool", name)
        return tool.handler(arguments or {})

    def read_resource(self, uri: str) -> dict[str, Any]:
        """Return the contents of resource *uri*.

        Raises:
            NotFoundError: If no such resource is registered.
        """
        resource = self._resources.get(uri)
        if resource is None:
            raise NotFoundError("resource", uri)
        return {
            "uri": resource.uri,
            "name": resource.name,
            "mimeType": resource.mime_type,
            "text": resource.text,
        }

    def get_prompt(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Render prompt *name* with *arguments*.

        Raises:
            NotFoundError: If no such prompt is registered.
            TemplateError: If the prompt's workflow template fails.
        """
        prompt = self._prompts.get(name)
        if prompt is None:
            raise NotFoundError("prompt", name)
        return prompt.handler(arguments or {})
