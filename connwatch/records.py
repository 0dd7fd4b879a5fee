"""Connection records and the identity that ties them together across samples."""

import ipaddress
from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: str

    def __str__(self):
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def ip(self):
        """Parsed address, or None for wildcards and hostnames."""
        try:
            return ipaddress.ip_address(self.host.split("%", 1)[0])
        except ValueError:
            return None


@dataclass(frozen=True)
class ConnectionKey:
    protocol: str
    local: Endpoint
    remote: Optional[Endpoint]
    pid: int

    def __str__(self):
        if self.remote is None:
            return f"{self.protocol} {self.local} pid={self.pid}"
        return f"{self.protocol} {self.local}->{self.remote} pid={self.pid}"


@dataclass(frozen=True)
class ConnectionRecord:
    identity: ConnectionKey
    state_label: str = ""
    first_seen: int = 0
    last_seen: int = 0
    command: str = "-"
    seen_at: float = 0.0

    def observed(self, tick, state_label, seen_at):
        """Copy of this record re-observed at ``tick``; first_seen is kept."""
        return replace(self, last_seen=tick, state_label=state_label, seen_at=seen_at)

    def stamped(self, tick, seen_at):
        """Copy of a freshly parsed record marked as first seen at ``tick``."""
        return replace(self, first_seen=tick, last_seen=tick, seen_at=seen_at)
