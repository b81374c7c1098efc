"""Packets exchanged between nodes and how they are encoded on the wire."""

from __future__ import annotations

import ipaddress
import logging
import queue
import struct
from dataclasses import dataclass
from enum import IntEnum

from .addresses import addr_to_id
from .roles import Role

log = logging.getLogger(__name__)

Address = tuple[str, int]

SEPARATOR = b"||"
SIZE_HEADER = 5
WAIT_TIMEOUT_SECONDS = 2.0

_HEADER = struct.Struct(">BI")
_PORT = struct.Struct(">H")


class Action(IntEnum):
    """What a client asks the cluster to do with a file."""

    READ = 0
    WRITE = 1

    @classmethod
    def parse(cls, text: str) -> Action:
        """Parse an action name, ignoring case."""
        lookup = {"read": cls.READ, "write": cls.WRITE}
        try:
            return lookup[text.lower()]
        except KeyError:
            raise ValueError(f"Cannot parse given string to Action. Got: {text}") from None


class PacketId(IntEnum):
    """Kind of a packet, sent as its first byte."""

    DEFAULT = 0
    HEARTBEAT = 1
    HEARTBEAT_ACK = 2
    REQUEST_SEND_REPLICA = 3
    SEND_REPLICA = 4
    SEND_REPLICA_ACK = 5
    ASK_IP = 6
    ASK_IP_ACK = 7
    REQUEST_FROM_CLIENT = 8
    RESPONSE_NODE_IP = 9
    CLIENT_UPLOAD = 10
    DATA_NODE_SEND_DATA = 11
    CLIENT_REQUEST_ACK = 12
    STATE_SYNC = 13
    STATE_SYNC_ACK = 14
    NOTIFY = 15
    CLIENT_UPLOAD_ACK = 16

    def __str__(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


def _format_addr(addr: Address | None) -> str:
    if addr is None:
        return "None"
    host, port = addr
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _ipv4_packed(host: str) -> bytes | None:
    address = ipaddress.ip_address(host)
    if isinstance(address, ipaddress.IPv4Address):
        return address.packed
    return None


def _port_bytes(port: int) -> bytes:
    return _PORT.pack(port)


@dataclass
class Packet:
    """A message between nodes, with the fields decoded from its payload."""

    packet_id: PacketId = PacketId.DEFAULT
    addr_sender: Address | None = None
    addr_rcv: Address | None = None
    payload: bytes | None = None
    addr_master: Address | None = None
    addr_data: Address | None = None
    addr_deliver: Address | None = None
    role: Role | None = None
    node_id: str | None = None
    flag_read_write: Action | None = None
    filename: str | None = None
    binary: bytes | None = None

    def __str__(self) -> str:
        return f"Packet: packet_id: {self.packet_id}, addr_sender: {_format_addr(self.addr_sender)}"

    def to_bytes(self) -> bytes:
        """Encode as packet id byte, big-endian u32 payload size, payload."""
        payload = self.payload or b""
        return _HEADER.pack(int(self.packet_id), len(payload)) + payload

    @classmethod
    def create_heartbeat(cls, addr_rcv: Address) -> Packet:
        return cls(packet_id=PacketId.HEARTBEAT, addr_rcv=addr_rcv)

    @classmethod
    def create_heartbeat_ack(cls, addr_rcv: Address, addr_current: Address) -> Packet:
        host, port = addr_current
        payload = b""
        if _ipv4_packed(host) is not None:
            payload = addr_to_id(host, port).encode()
        else:
            log.error("Creating HEARTBEAT_ACK, but IP of current node isn't IPv4 format.")
        return cls(packet_id=PacketId.HEARTBEAT_ACK, addr_rcv=addr_rcv, payload=payload)

    @classmethod
    def create_request_send_replica(cls, addr_rcv: Address, addr_deliver: Address, filename: str) -> Packet:
        packet = cls(packet_id=PacketId.REQUEST_SEND_REPLICA, addr_rcv=addr_rcv)
        host, port = addr_deliver
        packed = _ipv4_packed(host)
        if packed is not None:
            packet.payload = packed + _port_bytes(port) + filename.encode()
        return packet

    @classmethod
    def create_send_replica(cls, addr_rcv: Address, filename: str, binary: bytes) -> Packet:
        payload = filename.encode() + SEPARATOR + bytes(binary)
        return cls(packet_id=PacketId.SEND_REPLICA, addr_rcv=addr_rcv, payload=payload)

    @classmethod
    def create_send_replica_ack(cls, addr_rcv: Address, filename: str) -> Packet:
        return cls(packet_id=PacketId.SEND_REPLICA_ACK, addr_rcv=addr_rcv, payload=filename.encode())

    @classmethod
    def create_ask_ip(cls, addr_rcv: Address, port: int) -> Packet:
        return cls(packet_id=PacketId.ASK_IP, addr_rcv=addr_rcv, payload=_port_bytes(port))

    @classmethod
    def create_ask_ip_ack(cls, addr_rcv: Address, addr_master: Address | None) -> Packet:
        packet = cls(packet_id=PacketId.ASK_IP_ACK, addr_rcv=addr_rcv)
        if addr_master is not None:
            host, port = addr_master
            packed = _ipv4_packed(host)
            if packed is not None:
                packet.payload = packed + _port_bytes(port)
        return packet

    @classmethod
    def create_request_from_client(cls, action: Action, port: int, filename: str, addr_rcv: Address) -> Packet:
        payload = bytes([int(action)]) + _port_bytes(port) + filename.encode()
        return cls(packet_id=PacketId.REQUEST_FROM_CLIENT, addr_rcv=addr_rcv, payload=payload)

    @classmethod
    def create_response_node_ip(cls, addr_rcv: Address, addr_node: Address) -> Packet:
        packet = cls(packet_id=PacketId.RESPONSE_NODE_IP, addr_rcv=addr_rcv)
        host, port = addr_node
        packed = _ipv4_packed(host)
        if packed is not None:
            packet.payload = packed + _port_bytes(port)
        return packet

    @classmethod
    def create_client_upload(cls, port: int, addr_rcv: Address, filename: str, binary: bytes) -> Packet:
        payload = _port_bytes(port) + filename.encode() + SEPARATOR + bytes(binary)
        return cls(packet_id=PacketId.CLIENT_UPLOAD, addr_rcv=addr_rcv, payload=payload)

    @classmethod
    def create_client_request_ack(cls, action: Action, port: int, filename: str, addr_master: Address) -> Packet:
        payload = bytes([int(action)]) + _port_bytes(port) + filename.encode()
        return cls(packet_id=PacketId.CLIENT_REQUEST_ACK, addr_rcv=addr_master, payload=payload)

    @classmethod
    def create_notify(cls, addr_rcv: Address, role: Role, addr_current: Address) -> Packet:
        payload = bytes([role.to_byte()]) + _port_bytes(addr_current[1])
        return cls(packet_id=PacketId.NOTIFY, addr_rcv=addr_rcv, payload=payload)

    @classmethod
    def create_client_upload_ack(cls, addr_rcv: Address) -> Packet:
        return cls(packet_id=PacketId.CLIENT_UPLOAD_ACK, addr_rcv=addr_rcv)


def forward_packet(outbox: queue.Queue, packet: Packet) -> None:
    """Hand a packet to the sender thread, logging if that fails."""
    try:
        outbox.put_nowait(packet)
    except queue.Full as err:
        log.error("Err as sending from thread:Processor -> thread:Sender: %s", err)


def wait_packet(inbox: queue.Queue) -> Packet:
    """Block until a packet arrives from the receiver thread."""
    while True:
        try:
            return inbox.get(timeout=WAIT_TIMEOUT_SECONDS)
        except queue.Empty:
            continue