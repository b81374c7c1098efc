"""Decoding of packets received from other nodes."""

from __future__ import annotations

import ipaddress
import logging
import socket

from .errors import ParseError
from .packets import SEPARATOR, SIZE_HEADER, Action, Address, Packet, PacketId
from .roles import Role

log = logging.getLogger(__name__)

BUFF_LEN = 1024

_ADDRESS_PAYLOAD_SIZE = 6


def _decode_text(raw: bytes, context: str) -> str | None:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as err:
        log.error("%s: Cannot parse text: %s", context, err)
        return None


def _decode_address(raw: bytes) -> Address:
    ip = str(ipaddress.IPv4Address(raw[:4]))
    port = int.from_bytes(raw[4:6], "big")
    return ip, port


def _with_port(addr: Address | None, raw: bytes) -> Address:
    if addr is None:
        log.error("Cannot set port: sender address is unknown")
        raise ParseError.stream_reading_err()
    return addr[0], int.from_bytes(raw, "big")


def _parse_action(packet: Packet, payload: bytes) -> Action:
    if not payload or payload[0] not in (Action.READ, Action.WRITE):
        flag = payload[0] if payload else None
        log.error(
            "Receiving %s from: %s: Invalid 'flag_read_write': %s",
            packet.packet_id,
            packet.addr_sender,
            flag,
        )
        raise ParseError.stream_reading_err()
    return Action(payload[0])


def _split_binary(payload: bytes, start: int) -> tuple[str | None, bytes]:
    """Split ``filename || binary`` found in ``payload``; the filename begins at ``start``."""
    idx = payload.find(SEPARATOR)
    if idx < 0 or idx < start:
        log.error("Reading upload: Not found 2 consecutive separating characters '||'")
        raise ParseError.stream_reading_err()
    if idx + len(SEPARATOR) == len(payload):
        log.error("Reading upload: Found '||' at the end of payload => No binary found")
        raise ParseError.stream_reading_err()
    filename = _decode_text(payload[start:idx], "Reading upload: filename")
    return filename, payload[idx + len(SEPARATOR):]


def parse_packet(data: bytes, addr_sender: Address | None = None) -> Packet:
    """Decode one whole packet sent from ``addr_sender``; raise ParseError if malformed."""
    data = bytes(data)
    if len(data) < SIZE_HEADER:
        raise ParseError.incorrect_min_header_size(len(data))

    try:
        packet_id = PacketId(data[0])
    except ValueError:
        raise ParseError.incorrect_packet_id(data[0]) from None

    payload_size = int.from_bytes(data[1:SIZE_HEADER], "big")
    if len(data) != SIZE_HEADER + payload_size:
        raise ParseError.mismatched_packet_size(packet_id, len(data), payload_size)

    payload = data[SIZE_HEADER:]
    packet = Packet(packet_id=packet_id, addr_sender=addr_sender)

    if packet_id in (
        PacketId.HEARTBEAT,
        PacketId.DATA_NODE_SEND_DATA,
        PacketId.STATE_SYNC,
        PacketId.STATE_SYNC_ACK,
        PacketId.CLIENT_UPLOAD_ACK,
    ):
        pass

    elif packet_id is PacketId.HEARTBEAT_ACK:
        packet.node_id = _decode_text(payload, "Parsing HEARTBEAT_ACK: node_id")

    elif packet_id is PacketId.REQUEST_SEND_REPLICA:
        if payload_size < _ADDRESS_PAYLOAD_SIZE:
            raise ParseError.stream_reading_err()
        packet.addr_deliver = _decode_address(payload)
        filename = _decode_text(payload[_ADDRESS_PAYLOAD_SIZE:], "Receiving RequestSendReplica: filename")
        if filename is None:
            raise ParseError.stream_reading_err()
        packet.filename = filename

    elif packet_id is PacketId.SEND_REPLICA:
        packet.filename, packet.binary = _split_binary(payload, 0)

    elif packet_id is PacketId.SEND_REPLICA_ACK:
        packet.filename = _decode_text(payload, "Reading SendReplicaAck: filename")

    elif packet_id is PacketId.ASK_IP:
        if payload_size != 2:
            log.info("Packet AskIP requires specifying port of thread:Receiver of sender")
            raise ParseError.mismatched_packet_size(packet_id, len(data), payload_size)
        packet.addr_sender = _with_port(packet.addr_sender, payload)

    elif packet_id in (PacketId.ASK_IP_ACK, PacketId.RESPONSE_NODE_IP):
        if payload_size == 0:
            raise ParseError.unavailable_master_ip()
        if payload_size != _ADDRESS_PAYLOAD_SIZE:
            raise ParseError.incorrect_payload_size_ask_ip_ack(payload_size)
        if packet_id is PacketId.ASK_IP_ACK:
            packet.addr_master = _decode_address(payload)
        else:
            packet.addr_data = _decode_address(payload)

    elif packet_id is PacketId.REQUEST_FROM_CLIENT:
        packet.flag_read_write = _parse_action(packet, payload)
        if payload_size < 4:
            raise ParseError.stream_reading_err()
        packet.addr_sender = _with_port(packet.addr_sender, payload[1:3])
        # The last payload byte is not taken into the filename.
        filename = _decode_text(payload[3:-1], "Receiving RequestFromClient: filename")
        if filename is None:
            raise ParseError.stream_reading_err()
        packet.filename = filename

    elif packet_id is PacketId.CLIENT_UPLOAD:
        if payload_size < 2:
            raise ParseError.stream_reading_err()
        packet.addr_sender = _with_port(packet.addr_sender, payload[0:2])
        packet.filename, packet.binary = _split_binary(payload, 2)

    elif packet_id is PacketId.CLIENT_REQUEST_ACK:
        packet.flag_read_write = _parse_action(packet, payload)
        if payload_size < 3:
            raise ParseError.stream_reading_err()
        packet.addr_sender = _with_port(packet.addr_sender, payload[1:3])
        packet.filename = _decode_text(payload[3:], "Reading ClientRequestAck: filename")

    elif packet_id is PacketId.NOTIFY:
        if payload_size != 3:
            raise ParseError.mismatched_packet_size(packet_id, len(data), payload_size)
        try:
            packet.role = Role.from_byte(payload[0])
        except ValueError as err:
            log.error("Parsing Notify: %s", err)
            raise ParseError.stream_reading_err() from err
        packet.addr_sender = _with_port(packet.addr_sender, payload[1:3])

    else:
        raise ParseError.incorrect_packet_id(int(packet_id))

    log.debug("%s", packet)
    return packet


def read_packet(sock: socket.socket) -> Packet:
    """Read one packet from a connected socket and decode it."""
    chunks: list[bytes] = []
    while True:
        try:
            chunk = sock.recv(BUFF_LEN)
        except OSError as err:
            log.error("Err as reading bytes from stream: %s", err)
            raise ParseError.stream_reading_err() from err
        if not chunk:
            break
        chunks.append(chunk)
        if len(chunk) < BUFF_LEN:
            break

    try:
        peer = sock.getpeername()
    except OSError as err:
        log.error("Cannot determine peer address: %s", err)
        raise ParseError.stream_reading_err() from err
    addr_sender = (peer[0], peer[1])
    return parse_packet(b"".join(chunks), addr_sender)