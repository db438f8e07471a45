"""Line-oriented JSON-RPC 2.0 transport over stdin/stdout."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from typing import Any, TextIO

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND

from technocrat.mcp.errors import TemplateError
from technocrat.mcp.handler import Handler, HandlerError, initialize_result

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class RPCError(Exception):
    """A JSON-RPC error to be returned to the client."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


def _params(request: dict[str, Any]) -> dict[str, Any]:
    params = request.get("params")
    if not isinstance(params, dict):
        raise RPCError(INVALID_PARAMS, "Invalid params")
    return params


def _name(params: dict[str, Any], key: str, label: str) -> str:
    value = params.get(key)
    if not isinstance(value, str):
        raise RPCError(INVALID_PARAMS, f"Missing {label}")
    return value


def _arguments(params: dict[str, Any]) -> dict[str, Any]:
    arguments = params.get("arguments")
    return arguments if isinstance(arguments, dict) else {}


class StdioServer:
    """Serve MCP requests read line by line from a text stream.

    Requests are handled strictly in order; each produces exactly one
    response line before the next line is read. Notifications (requests
    without an ``id``) produce no output.
    """

    def __init__(
        self,
        handler: Handler | None = None,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.handler = handler or Handler()
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._methods: dict[str, Callable[[dict[str, Any]], Any]] = {
            "initialize": lambda request: initialize_result(),
            "ping": lambda request: {},
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
        }

    def serve(self) -> None:
        """Process requests until the input stream is exhausted."""
        logger.info("MCP stdio server ready")
        for raw in self._stdin:
            line = raw.strip()
            if not line:
                continue
            try:
                request = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Error parsing request: %s", e)
                continue

            response = self.handle_request(request)
            if response is None:
                continue
            self._stdout.write(json.dumps(response) + "\n")
            self._stdout.flush()
        logger.info("MCP stdio input closed")

    def handle_request(self, request: Any) -> dict[str, Any] | None:
        """Handle one decoded request and return its response.

        Returns None for notifications.
        """
        if not isinstance(request, dict):
            return self._error(None, INVALID_REQUEST, "Invalid request: not an object")

        request_id = request.get("id")
        is_notification = "id" not in request
        method = request.get("method")
        if not isinstance(method, str):
            if is_notification:
                return None
            return self._error(
                request_id, INVALID_REQUEST, "Invalid request: missing method"
            )

        func = self._methods.get(method)
        if func is None:
            if is_notification:
                logger.debug("Ignoring notification %s", method)
                return None
            return self._error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        try:
            result = func(request)
        except RPCError as e:
            return None if is_notification else self._error(request_id, e.code, e.message)
        except (HandlerError, TemplateError) as e:
            logger.warning("%s failed: %s", method, e)
            if is_notification:
                return None
            return self._error(request_id, INTERNAL_ERROR, f"Internal error: {e}")
        except Exception as e:
            # One failing request must not end the serve loop.
            logger.exception("Unexpected error handling %s", method)
            if is_notification:
                return None
            return self._error(request_id, INTERNAL_ERROR, f"Internal error: {e}")

        if is_notification:
            return None
        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": {"code": code, "message": message},
        }

    # ── Methods ──────────────────────────────────────────────────────

    def _tools_list(self, request: dict[str, Any]) -> dict[str, Any]:
        return {"tools": [tool.to_dict() for tool in self.handler.list_tools()]}

    def _tools_call(self, request: dict[str, Any]) -> Any:
        params = _params(request)
        name = _name(params, "name", "tool name")
        return self.handler.call_tool(name, _arguments(params))

    def _resources_list(self, request: dict[str, Any]) -> dict[str, Any]:
        return {
            "resources": [
                resource.to_dict() for resource in self.handler.list_resources()
            ]
        }

    def _resources_read(self, request: dict[str, Any]) -> dict[str, Any]:
        params = _params(request)
        uri = _name(params, "uri", "resource uri")
        return {"contents": self.handler.read_resource(uri)}

    def _prompts_list(self, request: dict[str, Any]) -> dict[str, Any]:
        return {"prompts": [prompt.to_dict() for prompt in self.handler.list_prompts()]}

    def _prompts_get(self, request: dict[str, Any]) -> dict[str, Any]:
        params = _params(request)
        name = _name(params, "name", "prompt name")
        return self.handler.get_prompt(name, _arguments(params))
