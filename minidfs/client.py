"""The client node: uploads one file to the cluster."""

from __future__ import annotations

import logging
import queue
from pathlib import Path

from .errors import NodeCreationError, NodeCreationErrorCode
from .node import Node
from .packets import Action, Packet, PacketId, forward_packet, wait_packet

log = logging.getLogger(__name__)


def _fail(message: str, *args: object) -> None:
    log.error(message, *args)
    raise SystemExit(1)


class ClientNode(Node):
    """Carries out the action given on the command line, then stops."""

    def send_file(self, inbox: queue.Queue, outbox: queue.Queue) -> None:
        """Upload the configured file: ask DNS for Master, Master for a Data node, then send."""
        args = self.configs.args
        port = args.port

        log.debug("1. Read file: %s", args.path)
        try:
            binary = Path(args.path).read_bytes()
        except (OSError, TypeError) as err:
            _fail("Reading file: %s. Got err: %s", args.path, err)

        log.debug("Ask Master address from DNS: %s:%s", *self.addr_dns)
        forward_packet(outbox, Packet.create_ask_ip(self.addr_dns, port))
        packet = wait_packet(inbox)
        if packet.packet_id is not PacketId.ASK_IP_ACK:
            _fail("Must received AskIpAck from DNS. Got: %s", packet.packet_id)
        if packet.addr_master is None:
            _fail("Received packet not contain addr_master")
        addr_master = packet.addr_master

        log.debug("Connect to Master: %s:%s", *addr_master)
        forward_packet(outbox, Packet.create_request_from_client(Action.WRITE, port, args.name, addr_master))
        packet = wait_packet(inbox)
        if packet.packet_id is not PacketId.RESPONSE_NODE_IP:
            _fail("Must received ResponseNodeIp from Master. Got: %s", packet.packet_id)
        if packet.addr_data is None:
            _fail("Received packet not contained 'addr_data'")
        addr_data = packet.addr_data

        log.debug("Connect to Data node to send file: %s:%s - %s", *addr_data, args.path)
        forward_packet(outbox, Packet.create_client_upload(port, addr_data, args.name, binary))
        packet = wait_packet(inbox)
        if packet.packet_id is not PacketId.CLIENT_UPLOAD_ACK:
            log.error("Supposed to received ClientUploadAck. Got: %s", packet.packet_id)

    def trigger_processor(self, inbox: queue.Queue, outbox: queue.Queue) -> None:
        """Run the requested action once."""
        action = self.configs.args.action
        if action is None:
            log.error("args.action must not be None")
            raise NodeCreationError(NodeCreationErrorCode.PROCESSOR_THREAD_ERR)

        if action is Action.WRITE:
            self.send_file(inbox, outbox)
        # Reading a file back from the cluster is not supported yet.