"""The Data node: stores uploaded files and replicates them on request."""

from __future__ import annotations

import logging
import queue

from .addresses import addr_to_id
from .config import Configs
from .database import DBManager
from .entries import FileInfoEntry
from .errors import DBManagerCreationError, NodeCreationError, NodeCreationErrorCode
from .file_store import FileStore
from .node import Node
from .packets import Action, Address, Packet, PacketId, forward_packet
from .roles import Role

log = logging.getLogger(__name__)


class DataNode(Node):
    """Holds file contents and answers the Master's replication requests."""

    def __init__(self, configs: Configs) -> None:
        super().__init__(configs)
        self.addr_master: Address | None = None
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
                manager.initialize_db(Role.DATA)
            except DBManagerCreationError as err:
                raise NodeCreationError(NodeCreationErrorCode.PROCESSOR_THREAD_ERR) from err
            self.db_manager = manager
        return self.file_store, self.db_manager

    def _local_node_id(self) -> str:
        host, port = self.addr_current
        return addr_to_id(host, port)

    def _store(self, filename: str, binary: bytes) -> bool:
        """Save a file and record it as held here; return False if saving failed."""
        file_store, db_manager = self._ensure_ready()
        try:
            file_store.save_file(filename, binary)
        except OSError as err:
            log.error("Cannot create new file: %s: Err: %s", filename, err)
            return False
        db_manager.upsert_file(FileInfoEntry(filename, True, self._local_node_id()))
        return True

    def handle_packet(self, packet: Packet, outbox: queue.Queue) -> None:
        """React to one received packet."""
        handlers = {
            PacketId.HEARTBEAT: self._on_heartbeat,
            PacketId.ASK_IP_ACK: self._on_ask_ip_ack,
            PacketId.CLIENT_UPLOAD: self._on_client_upload,
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

    def _on_heartbeat(self, packet: Packet, outbox: queue.Queue) -> None:
        if self.addr_master is None:
            log.error("Received Heartbeat before the Master's address is known")
            return
        forward_packet(outbox, Packet.create_heartbeat_ack(self.addr_master, self.addr_current))

    def _on_ask_ip_ack(self, packet: Packet, outbox: queue.Queue) -> None:
        if packet.addr_master is None:
            log.error("Received packet not contain address of Master")
            return
        self.addr_master = packet.addr_master
        forward_packet(outbox, Packet.create_notify(packet.addr_master, Role.DATA, self.addr_current))

    def _on_client_upload(self, packet: Packet, outbox: queue.Queue) -> None:
        filename, binary = packet.filename, packet.binary
        if filename is None or binary is None:
            log.error("ClientUpload carries no filename or binary: %s", packet)
            return
        if not self._store(filename, binary):
            return

        if packet.addr_sender is not None:
            forward_packet(outbox, Packet.create_client_upload_ack(packet.addr_sender))
        else:
            log.error("ClientUpload has no sender address to acknowledge")

        if self.addr_master is None:
            log.error("Cannot report upload of %s: Master's address is unknown", filename)
            return
        forward_packet(
            outbox,
            Packet.create_client_request_ack(Action.WRITE, self.addr_current[1], filename, self.addr_master),
        )

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
        # Replication step 3 (continued): the deliver node stores the file.
        filename, binary = packet.filename, packet.binary
        if filename is None or binary is None:
            log.error("SendReplica carries no filename or binary: %s", packet)
            return
        if not self._store(filename, binary):
            return
        log.debug("Replication process: done step 3.2")

        # Replication step 4: acknowledge to the Master.
        if self.addr_master is None:
            log.error("Cannot acknowledge replica of %s: Master's address is unknown", filename)
            return
        forward_packet(outbox, Packet.create_send_replica_ack(self.addr_master, filename))
        log.debug("Replication process: done step 4")

    def _on_send_replica_ack(self, packet: Packet, outbox: queue.Queue) -> None:
        # Replication step 5: record which node now holds the file.
        filename = packet.filename
        if filename is None or packet.addr_sender is None:
            log.error("SendReplicaAck carries no filename or sender: %s", packet)
            return
        try:
            node_id = addr_to_id(packet.addr_sender[0], self.addr_current[1])
        except ValueError:
            log.error("Cannot parse sender address to IPv4 format: %s", packet.addr_sender)
            return
        _, db_manager = self._ensure_ready()
        db_manager.upsert_file(FileInfoEntry(filename, True, node_id))
        log.debug("Replication process: done step 5")

    def trigger_processor(self, inbox: queue.Queue, outbox: queue.Queue) -> None:
        """Ask DNS for the Master, then process packets until shutdown is requested."""
        self._ensure_ready()

        forward_packet(outbox, Packet.create_ask_ip(self.addr_dns, self.configs.args.port))

        timeout = self.configs.timeout_chan_wait
        while not self.shutdown_requested.is_set():
            try:
                packet = inbox.get(timeout=timeout)
            except queue.Empty:
                continue
            self.handle_packet(packet, outbox)