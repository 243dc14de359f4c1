import json
import threading

import pytest

from wschat.broker import ChatTopic, KafkaChatServer
from wschat.client import ChatService, Client, MessageMode
from wschat.hub import ChatServer, InMemoryCache, InMemoryMessageStore, MessageBack
from wschat.models import Message


class FakeConn:
    def __init__(self, incoming=(), fail_close=False):
        self.incoming = list(incoming)
        self.written = []
        self.closed = False
        self.fail_close = fail_close

    def read_message(self):
        if not self.incoming:
            raise ConnectionError("gone")
        return self.incoming.pop(0)

    def write_message(self, data):
        self.written.append(data)

    def close(self):
        if self.fail_close:
            raise OSError("close failed")
        self.closed = True


def channel_service(size=100):
    store = InMemoryMessageStore()
    server = ChatServer(store, InMemoryCache(), channel_size=size)
    service = ChatService(
        "channel", store, chat_server=server, channel_size=size, run_threads=False
    )
    return service, server, store


def test_mode_parsed_from_string():
    service, *_ = channel_service()
    assert service.mode is MessageMode.CHANNEL


def test_missing_server_rejected():
    with pytest.raises(ValueError):
        ChatService(MessageMode.KAFKA, InMemoryMessageStore(), run_threads=False)


def test_forward_channel_goes_to_transmit():
    service, server, _ = channel_service()
    client = Client("U1", FakeConn(), service)
    assert client.forward(b'{"type":0}') is True
    assert server.transmit.get_nowait() == b'{"type":0}'


def test_forward_overflow_then_busy():
    service, server, _ = channel_service(size=1)
    conn = FakeConn()
    client = Client("U1", conn, service)
    assert client.forward(b"a")
    assert client.forward(b"b")
    assert client.send_to.get_nowait() == b"b"
    client.send_to.put_nowait(b"b")
    assert client.forward(b"c") is False
    assert conn.written == [
        "由于目前同一时间过多用户发送消息，消息发送失败，请稍后重试".encode("utf-8")
    ]


def test_forward_flushes_overflow_in_order():
    service, server, _ = channel_service(size=1)
    client = Client("U1", FakeConn(), service)
    client.forward(b"a")
    client.forward(b"b")
    assert server.transmit.get_nowait() == b"a"
    client.forward(b"c")
    assert server.transmit.get_nowait() == b"b"
    assert client.send_to.get_nowait() == b"c"


def test_forward_kafka_publishes_with_partition_key():
    store = InMemoryMessageStore()
    topic = ChatTopic("chat")
    kafka = KafkaChatServer(store, InMemoryCache(), topic)
    service = ChatService(
        "kafka", store, kafka_server=kafka, topic=topic, partition=2, run_threads=False
    )
    client = Client("U1", FakeConn(), service)
    assert client.forward('{"type":0}')
    record = topic.read(0)
    assert (record.key, record.value) == (b"2", b'{"type":0}')


def test_read_forwards_until_disconnect():
    service, server, _ = channel_service()
    client = Client("U1", FakeConn([b"one", b"two"]), service)
    client.read()
    assert [server.transmit.get_nowait() for _ in range(2)] == [b"one", b"two"]
    assert server.transmit.empty()


def test_write_sends_and_marks_sent():
    service, _, store = channel_service()
    store.save(Message(uuid="M1"))
    conn = FakeConn()
    client = Client("U1", conn, service)
    client.send_back.put(MessageBack(b"payload", "M1"))
    client.send_back.put(None)
    client.write()
    assert conn.written == [b"payload"]
    assert int(store.messages["M1"].status) == 1


def test_new_client_and_logout():
    service, server, _ = channel_service()
    conn = FakeConn()
    client = service.new_client(conn, "U1")
    server.process_pending()
    assert server.clients["U1"] is client
    assert service.client_logout("U1") == "退出成功"
    assert conn.closed
    assert client.send_back.get_nowait() is None
    server.process_pending()
    assert "U1" not in server.clients
    assert conn.written[-1] == "已退出登录".encode("utf-8")


def test_logout_unknown_client_succeeds():
    service, server, _ = channel_service()
    assert service.client_logout("U9") == "退出成功"
    assert server.logout.empty()


def test_logout_close_failure_raises():
    service, server, _ = channel_service()
    service.new_client(FakeConn(fail_close=True), "U1")
    server.process_pending()
    with pytest.raises(OSError):
        service.client_logout("U1")


def test_empty_client_id_rejected():
    service, *_ = channel_service()
    with pytest.raises(ValueError):
        service.new_client(FakeConn(), "")


def test_threads_deliver_message_end_to_end():
    store = InMemoryMessageStore()
    server = ChatServer(store, InMemoryCache())
    service = ChatService("channel", store, chat_server=server)
    payload = json.dumps(
        {
            "type": 0,
            "content": "ping",
            "send_id": "U1",
            "send_avatar": "http://localhost/static/avatars/a.png",
            "receive_id": "U1",
        }
    ).encode("utf-8")
    received = threading.Event()

    class Conn(FakeConn):
        def write_message(self, data):
            super().write_message(data)
            if b"ping" in data:
                received.set()

    conn = Conn([])
    client = service.new_client(conn, "U1")
    server.process_pending()
    client.forward(payload)
    server.process_pending()
    assert received.wait(2)
    body = json.loads(next(d for d in conn.written if b"ping" in d))
    assert body["send_id"] == "U1"
    service.client_logout("U1")