"""Threads shared by every node: a receiver, a sender and a processor."""

from __future__ import annotations

import logging
import queue
import socket
import sys
import threading
from abc import ABC, abstractmethod

from .config import Configs
from .errors import NodeCreationError, NodeCreationErrorCode, ParseError
from .packets import Address, Packet, forward_packet
from .parser import read_packet

log = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"
_LISTEN_HOST = "0.0.0.0"
_SOCKET_TIMEOUT_SECONDS = 5.0


class _ReceiverThread(threading.Thread):
    """Accepts connections and hands every decoded packet to the processor."""

    def __init__(self, listener: socket.socket, inbox: queue.Queue, stop_event: threading.Event) -> None:
        super().__init__(name="receiver", daemon=True)
        self._listener = listener
        self._inbox = inbox
        self._stop_event = stop_event
        self.port: int = listener.getsockname()[1]

    def run(self) -> None:
        log.info("Server starts at %s:%d", _LISTEN_HOST, self.port)
        with self._listener:
            while True:
                try:
                    conn, _ = self._listener.accept()
                except OSError as err:
                    log.error("%s", err)
                    if self._stop_event.is_set():
                        break
                    continue

                with conn:
                    if self._stop_event.is_set():
                        break
                    conn.settimeout(_SOCKET_TIMEOUT_SECONDS)
                    try:
                        packet = read_packet(conn)
                    except ParseError as err:
                        log.error("%s", err)
                        continue

                self._inbox.put(packet)


class _SenderThread(threading.Thread):
    """Delivers every packet put in the outbox to its receiver address."""

    def __init__(self, outbox: queue.Queue, stop_event: threading.Event) -> None:
        super().__init__(name="sender", daemon=True)
        self._outbox = outbox
        self._stop_event = stop_event

    def run(self) -> None:
        while True:
            packet: Packet = self._outbox.get()
            if self._stop_event.is_set():
                break

            if packet.addr_rcv is None:
                log.error("Field 'addr_rcv' not specified.")
                continue

            try:
                stream = socket.create_connection(packet.addr_rcv, timeout=_SOCKET_TIMEOUT_SECONDS)
            except OSError:
                log.error("Cannot connect to address: %s:%s", *packet.addr_rcv)
                continue

            with stream:
                try:
                    stream.sendall(packet.to_bytes())
                except OSError as err:
                    log.error("Cannot send to address: %s:%s : %s", *packet.addr_rcv, err)


class Node(ABC):
    """A cluster node: subclasses decide how received packets are processed."""

    def __init__(self, configs: Configs) -> None:
        self.configs = configs
        self.shutdown_requested = threading.Event()

    @property
    def addr_current(self) -> Address:
        """Address under which this node is reached on the local machine."""
        return LOOPBACK, self.configs.args.port

    @property
    def addr_dns(self) -> Address:
        """Address of the DNS node."""
        return self.configs.ip_dns, self.configs.port_dns

    def start(self, port: int) -> None:
        """Run the node on ``port`` until its processor returns."""
        inbox: queue.Queue = queue.Queue()
        outbox: queue.Queue = queue.Queue()
        stop_event = threading.Event()

        try:
            receiver = self.create_thread_receiver(port, inbox, stop_event)
            sender = self.create_thread_sender(outbox, stop_event)
        except NodeCreationError as err:
            log.error("%s", err)
            return

        bound_port = getattr(receiver, "port", port)

        try:
            self.trigger_processor(inbox, outbox)
        except NodeCreationError as err:
            log.error("%s", err)
            self.trigger_graceful_shutdown(stop_event, bound_port, outbox)

        self.trigger_graceful_shutdown(stop_event, bound_port, outbox)

        receiver.join()
        sender.join()

    def create_thread_receiver(
        self, port: int, inbox: queue.Queue, stop_event: threading.Event
    ) -> threading.Thread:
        """Bind to ``port`` on all interfaces and start the receiving thread."""
        log.info("Creating thread: Receiver")

        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            if sys.platform != "win32":
                listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((_LISTEN_HOST, port))
            listener.listen()
        except OSError as err:
            listener.close()
            log.error("Cannot bind to %s:%d: %s", _LISTEN_HOST, port, err)
            raise NodeCreationError(NodeCreationErrorCode.RECEIVER_THREAD_ERR) from err

        thread = _ReceiverThread(listener, inbox, stop_event)
        thread.start()
        return thread

    def create_thread_sender(self, outbox: queue.Queue, stop_event: threading.Event) -> threading.Thread:
        """Start the thread that delivers outgoing packets."""
        log.info("Creating thread: Sender")
        thread = _SenderThread(outbox, stop_event)
        thread.start()
        return thread

    def trigger_graceful_shutdown(self, stop_event: threading.Event, port: int, outbox: queue.Queue) -> None:
        """Stop the receiver and sender threads by waking each one after raising the flag."""
        log.debug("trigger_graceful_shutdown invoked!")

        stop_event.set()
        self.shutdown_requested.set()

        try:
            with socket.create_connection((LOOPBACK, port), timeout=_SOCKET_TIMEOUT_SECONDS):
                pass
        except OSError as err:
            log.error("Error as executing graceful shutdown: %s", err)

        forward_packet(outbox, Packet.create_heartbeat((LOOPBACK, port)))

    @abstractmethod
    def trigger_processor(self, inbox: queue.Queue, outbox: queue.Queue) -> None:
        """Process received packets; raise NodeCreationError if the node cannot run."""