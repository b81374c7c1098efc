import queue
import threading

import pytest

from minidfs.config import Args, Configs
from minidfs.data import DataNode
from minidfs.errors import NodeCreationError, NodeCreationErrorCode
from minidfs.packets import Action, Packet, PacketId
from minidfs.parser import parse_packet
from minidfs.roles import Role

PORT = 7001
MASTER = ("127.0.0.1", 7888)


def make_configs(dir_data, port=PORT):
    return Configs(
        ip_dns="127.0.0.1",
        port_dns=9000,
        interval_heartbeat=5,
        timeout_chan_wait=1,
        args=Args(role=Role.DATA, port=port, dir_data=str(dir_data)),
    )


def drain(outbox):
    items = []
    while True:
        try:
            items.append(outbox.get_nowait())
        except queue.Empty:
            return items


@pytest.fixture
def node(tmp_path):
    return DataNode(make_configs(tmp_path / "data"))


@pytest.fixture
def node_with_master(node):
    outbox = queue.Queue()
    node.handle_packet(Packet(packet_id=PacketId.ASK_IP_ACK, addr_master=MASTER), outbox)
    drain(outbox)
    return node


def test_ask_ip_ack_records_master_and_notifies(node):
    outbox = queue.Queue()
    node.handle_packet(Packet(packet_id=PacketId.ASK_IP_ACK, addr_master=MASTER), outbox)
    assert node.addr_master == MASTER
    [sent] = drain(outbox)
    assert sent.packet_id is PacketId.NOTIFY
    assert sent.addr_rcv == MASTER
    expected = Packet.create_notify(MASTER, Role.DATA, ("127.0.0.1", PORT))
    assert sent.to_bytes() == expected.to_bytes()


def test_ask_ip_ack_without_master_is_ignored(node):
    outbox = queue.Queue()
    node.handle_packet(Packet(packet_id=PacketId.ASK_IP_ACK), outbox)
    assert node.addr_master is None
    assert drain(outbox) == []


def test_heartbeat_answers_with_node_id(node_with_master):
    outbox = queue.Queue()
    node_with_master.handle_packet(Packet(packet_id=PacketId.HEARTBEAT, addr_sender=MASTER), outbox)
    [sent] = drain(outbox)
    assert sent.packet_id is PacketId.HEARTBEAT_ACK
    assert sent.addr_rcv == MASTER
    assert sent.payload == b"127.0.0.1:7001"


def test_heartbeat_before_master_known_sends_nothing(node):
    outbox = queue.Queue()
    node.handle_packet(Packet(packet_id=PacketId.HEARTBEAT, addr_sender=MASTER), outbox)
    assert drain(outbox) == []


def test_client_upload_stores_and_acknowledges(node_with_master, tmp_path):
    client = ("127.0.0.1", 5555)
    wire = Packet.create_client_upload(client[1], ("127.0.0.1", PORT), "a.txt", b"hello").to_bytes()
    packet = parse_packet(wire, ("127.0.0.1", 40000))
    outbox = queue.Queue()

    node_with_master.handle_packet(packet, outbox)

    assert (tmp_path / "data" / "a.txt").read_bytes() == b"hello"
    [entry] = node_with_master.db_manager.db_file.get_file_info("a.txt")
    assert entry.node_id == "127.0.0.1:7001"
    assert entry.is_local is True

    upload_ack, request_ack = drain(outbox)
    assert upload_ack.packet_id is PacketId.CLIENT_UPLOAD_ACK
    assert upload_ack.addr_rcv == client
    assert request_ack.packet_id is PacketId.CLIENT_REQUEST_ACK
    assert request_ack.addr_rcv == MASTER
    assert request_ack.to_bytes() == Packet.create_client_request_ack(
        Action.WRITE, PORT, "a.txt", MASTER
    ).to_bytes()


def test_client_upload_without_master_only_acks_client(node, tmp_path):
    client = ("127.0.0.1", 5555)
    packet = Packet(packet_id=PacketId.CLIENT_UPLOAD, addr_sender=client, filename="b.bin", binary=b"\x00\x01")
    outbox = queue.Queue()
    node.handle_packet(packet, outbox)
    assert (tmp_path / "data" / "b.bin").read_bytes() == b"\x00\x01"
    assert [p.packet_id for p in drain(outbox)] == [PacketId.CLIENT_UPLOAD_ACK]


def test_request_send_replica_sends_file(node, tmp_path):
    outbox = queue.Queue()
    node.handle_packet(
        Packet(packet_id=PacketId.CLIENT_UPLOAD, addr_sender=("127.0.0.1", 1), filename="f", binary=b"data"),
        outbox,
    )
    drain(outbox)
    deliver = ("127.0.0.1", 7002)

    node.handle_packet(
        Packet(packet_id=PacketId.REQUEST_SEND_REPLICA, addr_deliver=deliver, filename="f"), outbox
    )

    [sent] = drain(outbox)
    assert sent.packet_id is PacketId.SEND_REPLICA
    assert sent.addr_rcv == deliver
    assert sent.to_bytes() == Packet.create_send_replica(deliver, "f", b"data").to_bytes()


def test_request_send_replica_missing_file_sends_nothing(node):
    outbox = queue.Queue()
    node.handle_packet(
        Packet(packet_id=PacketId.REQUEST_SEND_REPLICA, addr_deliver=("127.0.0.1", 7002), filename="nope"),
        outbox,
    )
    assert drain(outbox) == []


def test_send_replica_stores_and_acks_master(node_with_master, tmp_path):
    outbox = queue.Queue()
    packet = Packet(
        packet_id=PacketId.SEND_REPLICA, addr_sender=("127.0.0.1", 7002), filename="r.txt", binary=b"copy"
    )
    node_with_master.handle_packet(packet, outbox)

    assert (tmp_path / "data" / "r.txt").read_bytes() == b"copy"
    [entry] = node_with_master.db_manager.db_file.get_file_info("r.txt")
    assert entry.node_id == "127.0.0.1:7001"
    [sent] = drain(outbox)
    assert sent.packet_id is PacketId.SEND_REPLICA_ACK
    assert sent.addr_rcv == MASTER
    assert sent.payload == b"r.txt"


def test_send_replica_ack_records_sender_ip_with_own_port(node):
    outbox = queue.Queue()
    node.handle_packet(
        Packet(packet_id=PacketId.SEND_REPLICA_ACK, addr_sender=("10.0.0.5", 4000), filename="x"), outbox
    )
    [entry] = node.db_manager.db_file.get_file_info("x")
    assert entry.node_id == "10.0.0.5:7001"
    assert drain(outbox) == []


def test_unsupported_packet_is_ignored(node):
    outbox = queue.Queue()
    node.handle_packet(Packet(packet_id=PacketId.NOTIFY, addr_sender=MASTER), outbox)
    assert drain(outbox) == []
    assert node.addr_master is None


def test_trigger_processor_asks_dns_for_master(node):
    inbox, outbox = queue.Queue(), queue.Queue()
    node.shutdown_requested.set()
    node.trigger_processor(inbox, outbox)
    [sent] = drain(outbox)
    assert sent.packet_id is PacketId.ASK_IP
    assert sent.addr_rcv == ("127.0.0.1", 9000)
    assert sent.payload == PORT.to_bytes(2, "big")


def test_trigger_processor_fails_when_data_dir_is_a_file(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    node = DataNode(make_configs(blocker))
    with pytest.raises(NodeCreationError) as info:
        node.trigger_processor(queue.Queue(), queue.Queue())
    assert info.value.error_code is NodeCreationErrorCode.PROCESSOR_THREAD_ERR


def test_processing_loop_handles_queued_packets(node):
    inbox, outbox = queue.Queue(), queue.Queue()
    inbox.put(Packet(packet_id=PacketId.ASK_IP_ACK, addr_master=MASTER))
    worker = threading.Thread(target=node.trigger_processor, args=(inbox, outbox))
    worker.start()

    first = outbox.get(timeout=5)
    second = outbox.get(timeout=5)
    node.shutdown_requested.set()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert [first.packet_id, second.packet_id] == [PacketId.ASK_IP, PacketId.NOTIFY]
    assert node.addr_master == MASTER