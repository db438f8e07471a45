"""Tests for the stdio JSON-RPC transport."""

import io
import json

import pytest

from technocrat.mcp.handler import Handler, Prompt, user_message
from technocrat.mcp.template_processor import TemplateData, process_template
from technocrat.mcp.stdio import StdioServer


@pytest.fixture
def server() -> StdioServer:
    """Create a stdio server without command prompts."""
    return StdioServer(Handler(register_commands=False))


def request(method: str, params: object = None, request_id: object = 1) -> dict:
    """Build a JSON-RPC request."""
    message: dict = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


class TestHandleRequest:
    """Tests for StdioServer.handle_request."""

    def test_initialize(self, server: StdioServer) -> None:
        """Test the initialize handshake."""
        response = server.handle_request(request("initialize", {}))
        assert response is not None
        assert response["jsonrpc"] == "2.0"
        assert response["id"] == 1
        assert response["result"]["protocolVersion"] == "2024-11-05"
        assert response["result"]["serverInfo"]["name"] == "technocrat"

    def test_ping(self, server: StdioServer) -> None:
        """Test ping returns an empty result."""
        assert server.handle_request(request("ping", request_id="abc")) == {
            "jsonrpc": "2.0",
            "id": "abc",
            "result": {},
        }

    def test_tools_list(self, server: StdioServer) -> None:
        """Test tools/list wraps the tools."""
        response = server.handle_request(request("tools/list"))
        assert response is not None
        assert [t["name"] for t in response["result"]["tools"]] == ["echo", "system_info"]

    def test_tools_call(self, server: StdioServer) -> None:
        """Test tools/call returns the tool result."""
        response = server.handle_request(
            request("tools/call", {"name": "echo", "arguments": {"message": "hi"}})
        )
        assert response is not None
        assert response["result"] == {"echoed": "hi"}

    def test_tools_call_missing_name(self, server: StdioServer) -> None:
        """Test tools/call without a name is invalid params."""
        response = server.handle_request(request("tools/call", {"arguments": {}}))
        assert response is not None
        assert response["error"] == {"code": -32602, "message": "Missing tool name"}

    def test_tools_call_without_params(self, server: StdioServer) -> None:
        """Test tools/call without params is invalid params."""
        response = server.handle_request(request("tools/call"))
        assert response is not None
        assert response["error"]["code"] == -32602

    def test_tool_failure_is_internal_error(self, server: StdioServer) -> None:
        """Test tool errors map to internal error."""
        response = server.handle_request(
            request("tools/call", {"name": "echo", "arguments": {}})
        )
        assert response is not None
        assert response["error"] == {
            "code": -32603,
            "message": "Internal error: message must be a string",
        }

    def test_resources(self, server: StdioServer) -> None:
        """Test resources/list and resources/read."""
        listed = server.handle_request(request("resources/list"))
        assert listed is not None
        assert listed["result"]["resources"][0]["uri"] == "info://server"

        read = server.handle_request(request("resources/read", {"uri": "info://server"}))
        assert read is not None
        assert read["result"]["contents"]["mimeType"] == "application/json"

    def test_resources_read_missing_uri(self, server: StdioServer) -> None:
        """Test resources/read without a uri."""
        response = server.handle_request(request("resources/read", {}))
        assert response is not None
        assert response["error"] == {"code": -32602, "message": "Missing resource uri"}

    def test_prompts(self, server: StdioServer) -> None:
        """Test prompts/list and prompts/get."""
        listed = server.handle_request(request("prompts/list"))
        assert listed is not None
        assert [p["name"] for p in listed["result"]["prompts"]] == ["welcome"]

        got = server.handle_request(
            request("prompts/get", {"name": "welcome", "arguments": {"name": "Ada"}})
        )
        assert got is not None
        assert got["result"]["messages"][0]["content"].startswith("Hello, Ada!")

    def test_unknown_prompt(self, server: StdioServer) -> None:
        """Test prompts/get for an unregistered prompt."""
        response = server.handle_request(request("prompts/get", {"name": "nope"}))
        assert response is not None
        assert response["error"] == {
            "code": -32603,
            "message": "Internal error: prompt not found: nope",
        }

    def test_method_not_found(self, server: StdioServer) -> None:
        """Test an unknown method."""
        response = server.handle_request(request("sampling/createMessage", {}, 7))
        assert response == {
            "jsonrpc": "2.0",
            "id": 7,
            "error": {"code": -32601, "message": "Method not found: sampling/createMessage"},
        }

    def test_not_an_object(self, server: StdioServer) -> None:
        """Test a request that is not a JSON object."""
        response = server.handle_request([1, 2])
        assert response is not None
        assert response["id"] is None
        assert response["error"]["code"] == -32600

    def test_missing_method(self, server: StdioServer) -> None:
        """Test a request without a method."""
        response = server.handle_request({"jsonrpc": "2.0", "id": 3})
        assert response is not None
        assert response["error"] == {
            "code": -32600,
            "message": "Invalid request: missing method",
        }

    def test_notifications_get_no_response(self, server: StdioServer) -> None:
        """Test requests without an id produce nothing."""
        assert server.handle_request({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None
        assert server.handle_request({"jsonrpc": "2.0", "method": "ping"}) is None

    def test_null_id_is_a_request(self, server: StdioServer) -> None:
        """Test an explicit null id still gets a response."""
        response = server.handle_request(request("ping", request_id=None))
        assert response == {"jsonrpc": "2.0", "id": None, "result": {}}


class TestServe:
    """Tests for the read-dispatch-write loop."""

    def test_responses_in_order(self, server: StdioServer) -> None:
        """Test one response line per request, skipping noise."""
        lines = [
            json.dumps(request("initialize", {}, 1)),
            "",
            "{not json",
            json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
            json.dumps(request("tools/call", {"name": "echo", "arguments": {"message": "x"}}, 2)),
            json.dumps(request("bogus", {}, 3)),
        ]
        stdin = io.StringIO("\n".join(lines) + "\n")
        stdout = io.StringIO()

        StdioServer(server.handler, stdin=stdin, stdout=stdout).serve()

        responses = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert [r["id"] for r in responses] == [1, 2, 3]
        assert responses[1]["result"] == {"echoed": "x"}
        assert responses[2]["error"]["code"] == -32601

    def test_empty_input(self, server: StdioServer) -> None:
        """Test the loop ends cleanly at end of input."""
        stdout = io.StringIO()
        StdioServer(server.handler, stdin=io.StringIO(""), stdout=stdout).serve()
        assert stdout.getvalue() == ""

    def test_unexpected_error_keeps_serving(self, server: StdioServer) -> None:
        """Test a crashing prompt gets an error reply and the loop continues."""

        def explode(arguments: dict) -> dict:
            raise RuntimeError("disk on fire")

        server.handler.register_prompt(Prompt("broken", "Always fails", explode))
        lines = [
            json.dumps(request("prompts/get", {"name": "broken"}, 1)),
            json.dumps(request("ping", None, 2)),
        ]
        stdout = io.StringIO()

        StdioServer(
            server.handler, stdin=io.StringIO("\n".join(lines) + "\n"), stdout=stdout
        ).serve()

        responses = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert responses[0]["error"] == {
            "code": -32603,
            "message": "Internal error: disk on fire",
        }
        assert responses[1] == {"jsonrpc": "2.0", "id": 2, "result": {}}

    def test_template_overflow_is_internal_error(self, server: StdioServer) -> None:
        """Test an out-of-range printf argument becomes a template error reply."""

        def render(arguments: dict) -> dict:
            return user_message(process_template('{{printf "%c" -1}}', TemplateData()))

        server.handler.register_prompt(Prompt("overflow", "Bad printf", render))
        response = server.handle_request(request("prompts/get", {"name": "overflow"}))
        assert response is not None
        assert response["error"]["code"] == -32603
        assert "template execute failed" in response["error"]["message"]
