"""Exceptions raised by packet parsing, node start-up and the metadata store."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ParseErrorCode(Enum):
    """Why a byte stream could not be parsed into a packet."""

    DEFAULT = "Default"
    INCORRECT_PACKET_ID = "IncorrectPacketId"
    INCORRECT_MINIMUM_HEADER_SIZE = "IncorrectMinimumHeaderSize"
    MISMATCHED_PACKET_SIZE = "MismatchedPacketSize"
    UNAVAILABLE_MASTER_ADDRESS = "UnavailableMasterAddress"
    INCORRECT_PAYLOAD_SIZE_ASK_IP_ACK = "IncorrectPayloadSizeAskIPAck"
    STREAM_READING_ERROR = "StreamReading"

    def __str__(self) -> str:
        return self.value


class ParseError(Exception):
    """A byte stream could not be parsed into a packet."""

    def __init__(
        self,
        error_code: ParseErrorCode = ParseErrorCode.DEFAULT,
        *,
        packet_id: Any = None,
        packet_id_value: int | None = None,
        header_size: int | None = None,
        payload_size: int | None = None,
        packet_size: int | None = None,
    ) -> None:
        self.error_code = error_code
        self.packet_id = packet_id
        self.packet_id_value = packet_id_value
        self.header_size = header_size
        self.payload_size = payload_size
        self.packet_size = packet_size
        super().__init__(str(self))

    def __str__(self) -> str:
        return (
            f"ParseError{{error_code: {self.error_code}, packet_id: {self.packet_id}, "
            f"packet_id_value: {self.packet_id_value}, header_size: {self.header_size}, "
            f"payload_size: {self.payload_size}, packet_size: {self.packet_size}}}"
        )

    @classmethod
    def incorrect_packet_id(cls, packet_id_value: int) -> ParseError:
        return cls(ParseErrorCode.INCORRECT_PACKET_ID, packet_id_value=packet_id_value)

    @classmethod
    def incorrect_min_header_size(cls, header_size: int) -> ParseError:
        return cls(ParseErrorCode.INCORRECT_MINIMUM_HEADER_SIZE, header_size=header_size)

    @classmethod
    def mismatched_packet_size(cls, packet_id: Any, packet_size: int, payload_size: int) -> ParseError:
        return cls(
            ParseErrorCode.MISMATCHED_PACKET_SIZE,
            packet_id=packet_id,
            packet_size=packet_size,
            payload_size=payload_size,
        )

    @classmethod
    def unavailable_master_ip(cls) -> ParseError:
        return cls(ParseErrorCode.UNAVAILABLE_MASTER_ADDRESS)

    @classmethod
    def incorrect_payload_size_ask_ip_ack(cls, payload_size: int) -> ParseError:
        return cls(ParseErrorCode.INCORRECT_PAYLOAD_SIZE_ASK_IP_ACK, payload_size=payload_size)

    @classmethod
    def stream_reading_err(cls) -> ParseError:
        return cls(ParseErrorCode.STREAM_READING_ERROR)


class NodeCreationErrorCode(Enum):
    """Which part of a node failed to start."""

    DEFAULT = "Default"
    RECEIVER_THREAD_ERR = "ReceiverThreadErr"
    PROCESSOR_THREAD_ERR = "ProcessorThreadErr"
    SENDER_THREAD_ERR = "SenderThreadErr"

    def __str__(self) -> str:
        return self.value


class NodeCreationError(Exception):
    """A node could not be started or its processor stopped with an error."""

    def __init__(self, error_code: NodeCreationErrorCode = NodeCreationErrorCode.DEFAULT) -> None:
        self.error_code = error_code
        super().__init__(f"Cannot create node: {error_code}")


class DBManagerCreationError(Exception):
    """The in-memory metadata database could not be set up."""