"""The Master node: tracks Data nodes and files, and drives replication."""

from __future__ import annotations

import ipaddress
import logging
import queue
import sqlite3

from .addresses import addr_to_id, id_to_addr
from .config import Configs
from .database import DBManager
from .entries import FileInfoEntry
from .errors import DBManagerCreationError, NodeCreationError, NodeCreationErrorCode
from .file_store import FileStore
from .node import Node
from .packets import Action, Address, Packet, PacketId, forward_packet
from .roles import Role

log = logging.getLogger(__name__)


def _is_ipv4(host: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(host), ipaddress.IPv4Address)
    except ValueError:
        return False


class MasterNode(Node):
    """Knows which node holds which file and picks nodes for uploads and replicas."""

    def __init__(self, configs: Configs) -> None:
        super().__init__(configs)
        self.file_store: FileStore | None = None
        self.db_manager: DBManager | None = None

    def _ensure_ready(self) -> tuple[FileStore, DBManager]:
        if self.file_store is None:
            try:
                self.file_store = FileStore(self.configs.args.dir_data)
            except OSError as err:
                log.error("Err as creating file_utils: %s", err)
                raise NodeCreationError(NodeCreationErrorCode.PROCESSOR_THREAD_ERR) from err
        if self.db_manager is None:
            try:
                manager = DBManager(self.configs.args.port)
                manager.initialize_db(Role.MASTER)
            except DBManagerCreationError as err:
                raise NodeCreationError(NodeCreationErrorCode.PROCESSOR_THREAD_ERR) from err
            self.db_manager = manager
        return self.file_store, self.db_manager

    def _local_node_id(self) -> str:
        host, port = self.addr_current
        return addr_to_id(host, port)

    def _pick_nodes(self, n: int) -> list[Address]:
        _, db_manager = self._ensure_ready()
        try:
            return db_manager.get_nodes_replication(n)
        except (sqlite3.Error, ValueError) as err:
            log.error("%s", err)
            return []

    def handle_packet(self, packet: Packet, outbox: queue.Queue) -> None:
        """React to one received packet."""
        log.debug("Received: %s", packet)
        handlers = {
            PacketId.HEARTBEAT_ACK: self._on_heartbeat_ack,
            PacketId.NOTIFY: self._on_notify,
            PacketId.REQUEST_FROM_CLIENT: self._on_request_from_client,
            PacketId.CLIENT_UPLOAD: self._on_client_upload,
            PacketId.CLIENT_REQUEST_ACK: self._on_client_request_ack,
            PacketId.REQUEST_SEND_REPLICA: self._on_request_send_replica,
            PacketId.SEND_REPLICA: self._on_send_replica,
            PacketId.SEND_REPLICA_ACK: self._on_send_replica_ack,
        }
        handler = handlers.get(packet.packet_id)
        if handler is None:
            log.error("Unsupported packet type: %s", packet)
            return
        self._ensure_ready()
        handler(packet, outbox)

    def _on_heartbeat_ack(self, packet: Packet, outbox: queue.Queue) -> None:
        if packet.node_id is None:
            return
        try:
            ip, port = id_to_addr(packet.node_id)
        except ValueError as err:
            log.error("Cannot parse following node_id to SocketAddrV4: %s | Err: %s", packet.node_id, err)
            return
        _, db_manager = self._ensure_ready()
        db_manager.upsert_node(ip, port, Role.DATA)

    def _on_notify(self, packet: Packet, outbox: queue.Queue) -> None:
        log.info("Master receives NOTIFY from: %s", packet.addr_sender)
        if packet.addr_sender is None:
            log.error("NOTIFY packet contains no sender' address")
            return
        host, port = packet.addr_sender
        if not _is_ipv4(host):
            return
        _, db_manager = self._ensure_ready()
        db_manager.upsert_node(host, port, Role.DATA)
        log.info("Master added new Data node: %s:%s", host, port)

    def _on_request_from_client(self, packet: Packet, outbox: queue.Queue) -> None:
        if packet.flag_read_write is None:
            log.error("Received RequestFromClient: 'flag_read_write' not specified")
            return
        if packet.addr_sender is None:
            log.error("Received RequestFromClient: Cannot determine 'packet.addr_sender'")
            return
        if packet.flag_read_write is not Action.WRITE:
            # Serving reads is not supported yet.
            return
        nodes = self._pick_nodes(1)
        if not nodes:
            log.error("No node available to receive data")
            return
        forward_packet(outbox, Packet.create_response_node_ip(packet.addr_sender, nodes[0]))

    def _on_client_upload(self, packet: Packet, outbox: queue.Queue) -> None:
        filename, binary = packet.filename, packet.binary
        if filename is None or binary is None:
            log.error("ClientUpload carries no filename or binary: %s", packet)
            return
        file_store, db_manager = self._ensure_ready()
        try:
            file_store.save_file(filename, binary)
        except OSError as err:
            log.error("Cannot create new file: %s: Err: %s", filename, err)
            return
        db_manager.upsert_file(FileInfoEntry(filename, True, self._local_node_id()))

        if packet.addr_sender is not None:
            forward_packet(outbox, Packet.create_client_upload_ack(packet.addr_sender))
        else:
            log.error("ClientUpload has no sender address to acknowledge")

        # The Master reports the completed write to itself.
        forward_packet(
            outbox,
            Packet.create_client_request_ack(Action.WRITE, self.addr_current[1], filename, self.addr_current),
        )

    def _on_client_request_ack(self, packet: Packet, outbox: queue.Queue) -> None:
        filename, addr_sender = packet.filename, packet.addr_sender
        if packet.flag_read_write is None or filename is None or addr_sender is None:
            log.error("ClientRequestAck is incomplete: %s", packet)
            return

        if packet.flag_read_write is Action.WRITE and _is_ipv4(addr_sender[0]):
            _, db_manager = self._ensure_ready()
            db_manager.upsert_file(FileInfoEntry(filename, True, addr_to_id(*addr_sender)))

        log.debug("Start Replication process")

        # Replication step 1: select a node to hold the replica.
        nodes = self._pick_nodes(2)
        if not nodes:
            log.error("No node available to hold the replica of %s", filename)
            return

        # Replication step 2: ask the holder to send the file to that node.
        forward_packet(outbox, Packet.create_request_send_replica(addr_sender, nodes[0], filename))
        log.debug("Replication process: done step 2")

    def _on_request_send_replica(self, packet: Packet, outbox: queue.Queue) -> None:
        # Replication step 3: send the nominated file to the deliver node.
        filename = packet.filename
        if filename is None or packet.addr_deliver is None:
            log.error("RequestSendReplica carries no filename or deliver address: %s", packet)
            return
        file_store, _ = self._ensure_ready()
        try:
            binary = file_store.read_file(filename)
        except OSError as err:
            log.error("Err as reading file '%s': %s", filename, err)
            return
        forward_packet(outbox, Packet.create_send_replica(packet.addr_deliver, filename, binary))
        log.debug("Replication process: done step 3.1")

    def _on_send_replica(self, packet: Packet, outbox: queue.Queue) -> None:
        # Replication step 3 (continued): the Master keeps its own copy of the file.
        filename = packet.filename
        if filename is None:
            log.error("SendReplica carries no filename: %s", packet)
            return
        file_store, db_manager = self._ensure_ready()
        try:
            binary = file_store.read_file(filename)
        except OSError as err:
            log.error("Err as reading file '%s': %s", filename, err)
            return
        try:
            file_store.save_file(filename, binary)
        except OSError as err:
            log.error("Cannot create new file: %s: Err: %s", filename, err)
            return
        db_manager.upsert_file(FileInfoEntry(filename, True, self._local_node_id()))
        log.debug("Replication process: done step 3.2")

        # Replication step 4: acknowledge to the Master, that is to itself.
        forward_packet(outbox, Packet.create_send_replica_ack(self.addr_current, filename))
        log.debug("Replication process: done step 4")

    def _on_send_replica_ack(self, packet: Packet, outbox: queue.Queue) -> None:
        # Replication step 5: record which node now holds the file.
        filename = packet.filename
        if filename is None or packet.addr_sender is None:
            log.error("SendReplicaAck carries no filename or sender: %s", packet)
            return
        if not _is_ipv4(packet.addr_sender[0]):
            log.error("Cannot parse sender address to IPv4 format: %s", packet.addr_sender)
            return
        node_id = addr_to_id(packet.addr_sender[0], self.addr_current[1])
        _, db_manager = self._ensure_ready()
        db_manager.upsert_file(FileInfoEntry(filename, True, node_id))
        log.debug("Replication process: done step 5")

    def trigger_processor(self, inbox: queue.Queue, outbox: queue.Queue) -> None:
        """Announce this node to DNS, then process packets until shutdown is requested."""
        self._ensure_ready()

        forward_packet(outbox, Packet.create_notify(self.addr_dns, Role.MASTER, self.addr_current))

        timeout = self.configs.timeout_chan_wait
        while not self.shutdown_requested.is_set():
            try:
                packet = inbox.get(timeout=timeout)
            except queue.Empty:
                continue
            self.handle_packet(packet, outbox)