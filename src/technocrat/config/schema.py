"""Configuration schema for technocrat."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Literal, cast

TransportType = Literal["http", "stdio"]
TRANSPORTS: tuple[str, ...] = ("http", "stdio")


@dataclass
class TechnocratConfig:
    """Technocrat configuration schema.

    Fields mirror the options of ``technocrat server`` plus the agent used
    by ``update-agent-context`` when none is given. None means "not set".
    """

    host: str | None = None
    port: int | None = None
    transport: TransportType | None = None
    default_agent: str | None = None

    def merge(self, other: TechnocratConfig) -> TechnocratConfig:
        """Merge another config into this one.

        Values from `other` take precedence when they are not None.
        Returns a new TechnocratConfig instance.
        """
        return TechnocratConfig(
            host=other.host if other.host is not None else self.host,
            port=other.port if other.port is not None else self.port,
            transport=(
                other.transport if other.transport is not None else self.transport
            ),
            default_agent=(
                other.default_agent
                if other.default_agent is not None
                else self.default_agent
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TechnocratConfig:
        """Create a TechnocratConfig from a dictionary.

        Unknown keys and values of the wrong shape are ignored.
        """
        host_raw = data.get("host")
        host = str(host_raw) if host_raw is not None else None

        port: int | None = None
        port_raw = data.get("port")
        if port_raw is not None:
            try:
                port = int(port_raw)
            except (TypeError, ValueError):
                port = None

        transport: TransportType | None = None
        transport_raw = data.get("transport")
        if transport_raw in TRANSPORTS:
            transport = cast(TransportType, transport_raw)

        agent_raw = data.get("default_agent")
        default_agent = str(agent_raw) if agent_raw else None

        return cls(
            host=host,
            port=port,
            transport=transport,
            default_agent=default_agent,
        )


# Default configuration values (used when not specified anywhere)
DEFAULT_CONFIG = TechnocratConfig(
    host="127.0.0.1",
    port=8080,
    transport="http",
)
