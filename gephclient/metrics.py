"""Connection metrics reported once a connection has been established."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .address import Address


@dataclass(frozen=True)
class BridgeMetrics:
    """Measurements for one bridge used by a connection."""

    address: Address
    protocol: str
    pipe_latency: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": str(self.address),
            "protocol": self.protocol,
            "pipe_latency": self.pipe_latency,
        }


@dataclass(frozen=True)
class ConnEstablished:
    """Metrics event emitted when a connection is up."""

    bridges: list[BridgeMetrics] = field(default_factory=list)
    total_latency: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """The event as a tagged mapping."""
        return {
            "type": "conn_established",
            "bridges": [bridge.to_dict() for bridge in self.bridges],
            "total_latency": self.total_latency,
        }

    def to_json(self) -> str:
        """The event as compact JSON."""
        return json.dumps(self.to_dict(), separators=(",", ":"))