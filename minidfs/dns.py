"""The DNS node: remembers the Master's address and hands it out."""

from __future__ import annotations

import logging
import queue

from .config import Configs
from .node import Node
from .packets import Address, Packet, PacketId, forward_packet

log = logging.getLogger(__name__)


class DnsNode(Node):
    """Answers AskIp with the address last announced by the Master."""

    def __init__(self, configs: Configs) -> None:
        super().__init__(configs)
        self.addr_master: Address | None = None

    def handle_packet(self, packet: Packet, outbox: queue.Queue) -> None:
        """React to one received packet."""
        log.debug("Received: %s", packet)

        addr_sender = packet.addr_sender
        if addr_sender is None:
            log.error("Attribute 'addr_sender' in packet not existed.")
            return

        if packet.packet_id is PacketId.ASK_IP:
            forward_packet(outbox, Packet.create_ask_ip_ack(addr_sender, self.addr_master))
        elif packet.packet_id is PacketId.NOTIFY:
            self.addr_master = addr_sender
            log.info("Address Master just notified: %s:%s", *addr_sender)
        else:
            log.error("Unsupported packet type: %s", packet)

    def trigger_processor(self, inbox: queue.Queue, outbox: queue.Queue) -> None:
        """Process packets until shutdown is requested."""
        timeout = self.configs.timeout_chan_wait
        while not self.shutdown_requested.is_set():
            try:
                packet = inbox.get(timeout=timeout)
            except queue.Empty:
                continue
            self.handle_packet(packet, outbox)