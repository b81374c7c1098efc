"""Rows of the in-memory metadata tables."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime

from .addresses import addr_to_id
from .roles import Role


@dataclass
class FileInfoEntry:
    """Which node holds a file."""

    filename: str
    is_local: bool
    node_id: str
    last_updated: datetime | None = None


@dataclass
class NodeInfoEntry:
    """A known node of the cluster."""

    node_id: str
    ip: str | None
    port: int
    role: Role
    last_updated: datetime | None = None

    @classmethod
    def from_address(cls, ip: str | ipaddress.IPv4Address, port: int, role: Role) -> NodeInfoEntry:
        """Build an entry whose node id is derived from its address."""
        return cls(
            node_id=addr_to_id(ip, port),
            ip=str(ipaddress.IPv4Address(ip)),
            port=port,
            role=role,
        )