"""Technocrat - spec-driven development toolkit and MCP prompt server."""

__version__ = "0.5.1"
