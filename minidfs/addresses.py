"""Conversion between socket addresses and node ids."""

from __future__ import annotations

import ipaddress
import logging
import re

log = logging.getLogger(__name__)

_PORT_RE = re.compile(r"\+?[0-9]+")


def addr_to_id(ip: str | ipaddress.IPv4Address, port: int) -> str:
    """Return the node id ``"ip:port"`` for an IPv4 address and port."""
    address = ipaddress.IPv4Address(ip)
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"Port out of range: {port}")
    return f"{address}:{port}"


def id_to_addr(node_id: str) -> tuple[str, int]:
    """Parse a node id back into an ``(ip, port)`` pair."""
    ip_text, colon, port_text = node_id.partition(":")
    if not colon:
        log.debug("Error as parsing node_id in string to IP and port: No colon found")
        raise ValueError(f"No colon found in node id: {node_id!r}")
    try:
        address = ipaddress.IPv4Address(ip_text)
    except ValueError as err:
        log.debug("Error as parsing node_id in string to IP and port: err as parsing IP: %s", err)
        raise ValueError(f"Invalid IP in node id: {node_id!r}") from err
    if not _PORT_RE.fullmatch(port_text) or int(port_text) > 0xFFFF:
        log.debug("Error as parsing node_id in string to IP and port: Err as parsing port: %s", port_text)
        raise ValueError(f"Invalid port in node id: {node_id!r}")
    return str(address), int(port_text)