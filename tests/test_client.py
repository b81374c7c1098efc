import queue

import pytest

from minidfs.client import ClientNode
from minidfs.config import Args, Configs
from minidfs.errors import NodeCreationError, NodeCreationErrorCode
from minidfs.packets import Action, Packet, PacketId
from minidfs.roles import Role

MASTER = ("127.0.0.1", 9000)
DATA = ("127.0.0.1", 9001)
CLIENT_PORT = 9100


def _node(path, action=Action.WRITE, name="upload.bin"):
    configs = Configs(
        ip_dns="127.0.0.1",
        port_dns=9200,
        interval_heartbeat=5,
        timeout_chan_wait=1,
        args=Args(role=Role.CLIENT, port=CLIENT_PORT, action=action, name=name, path=str(path)),
    )
    return ClientNode(configs)


def _drain(outbox):
    items = []
    while True:
        try:
            items.append(outbox.get_nowait())
        except queue.Empty:
            return items


@pytest.fixture
def upload_file(tmp_path):
    path = tmp_path / "source.bin"
    path.write_bytes(b"file contents")
    return path


def _responses(*packets):
    inbox = queue.Queue()
    for packet in packets:
        inbox.put(packet)
    return inbox


def test_write_sends_three_requests(upload_file):
    node = _node(upload_file)
    inbox = _responses(
        Packet(packet_id=PacketId.ASK_IP_ACK, addr_master=MASTER),
        Packet(packet_id=PacketId.RESPONSE_NODE_IP, addr_data=DATA),
        Packet(packet_id=PacketId.CLIENT_UPLOAD_ACK),
    )
    outbox = queue.Queue()
    node.trigger_processor(inbox, outbox)

    ask, request, upload = _drain(outbox)
    assert ask.to_bytes() == Packet.create_ask_ip(("127.0.0.1", 9200), CLIENT_PORT).to_bytes()
    assert ask.addr_rcv == ("127.0.0.1", 9200)
    assert request.addr_rcv == MASTER
    assert request.to_bytes() == Packet.create_request_from_client(
        Action.WRITE, CLIENT_PORT, "upload.bin", MASTER
    ).to_bytes()
    assert upload.addr_rcv == DATA
    assert upload.to_bytes() == Packet.create_client_upload(
        CLIENT_PORT, DATA, "upload.bin", b"file contents"
    ).to_bytes()
    assert inbox.empty()


def test_missing_file_exits(tmp_path):
    node = _node(tmp_path / "absent.bin")
    with pytest.raises(SystemExit) as info:
        node.send_file(queue.Queue(), queue.Queue())
    assert info.value.code == 1


def test_wrong_reply_from_dns_exits(upload_file):
    node = _node(upload_file)
    inbox = _responses(Packet(packet_id=PacketId.HEARTBEAT))
    outbox = queue.Queue()
    with pytest.raises(SystemExit) as info:
        node.send_file(inbox, outbox)
    assert info.value.code == 1
    assert [p.packet_id for p in _drain(outbox)] == [PacketId.ASK_IP]


def test_ack_without_master_exits(upload_file):
    node = _node(upload_file)
    inbox = _responses(Packet(packet_id=PacketId.ASK_IP_ACK))
    with pytest.raises(SystemExit):
        node.send_file(inbox, queue.Queue())


def test_response_without_data_address_exits(upload_file):
    node = _node(upload_file)
    inbox = _responses(
        Packet(packet_id=PacketId.ASK_IP_ACK, addr_master=MASTER),
        Packet(packet_id=PacketId.RESPONSE_NODE_IP),
    )
    outbox = queue.Queue()
    with pytest.raises(SystemExit):
        node.send_file(inbox, outbox)
    assert [p.packet_id for p in _drain(outbox)] == [PacketId.ASK_IP, PacketId.REQUEST_FROM_CLIENT]


def test_missing_action_raises(upload_file):
    node = _node(upload_file, action=None)
    with pytest.raises(NodeCreationError) as info:
        node.trigger_processor(queue.Queue(), queue.Queue())
    assert info.value.error_code is NodeCreationErrorCode.PROCESSOR_THREAD_ERR


def test_read_action_sends_nothing(upload_file):
    node = _node(upload_file, action=Action.READ)
    outbox = queue.Queue()
    node.trigger_processor(queue.Queue(), outbox)
    assert _drain(outbox) == []