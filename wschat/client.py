"""A websocket client's read and write loops and the service that manages them."""

from __future__ import annotations

import logging
import queue
import threading
from enum import Enum
from typing import Protocol

from .broker import ChatTopic, KafkaChatServer
from .hub import CHANNEL_SIZE, ChatServer, MessageStore
from .requests import ChatMessageRequest, RequestError, parse_request

logger = logging.getLogger(__name__)

BUSY_TEXT = "由于目前同一时间过多用户发送消息，消息发送失败，请稍后重试"
LOGOUT_OK = "退出成功"


class MessageMode(str, Enum):
    CHANNEL = "channel"
    KAFKA = "kafka"


class _Socket(Protocol):
    def read_message(self) -> bytes: ...

    def write_message(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class Client:
    """One connected user: messages read from its socket go to the hub,
    messages queued on send_back go out over the socket."""

    def __init__(self, uuid: str, conn: _Socket, service: "ChatService") -> None:
        self.uuid = uuid
        self.conn = conn
        self._service = service
        self.send_to: queue.Queue = queue.Queue(service.channel_size)
        self.send_back: queue.Queue = queue.Queue(service.channel_size)

    def read(self) -> None:
        """Forward socket messages until the connection fails."""
        logger.info("ws read loop start for %s", self.uuid)
        while True:
            try:
                raw = self.conn.read_message()
            except Exception as exc:  # any socket failure ends the session
                logger.error("read from %s failed: %s", self.uuid, exc)
                return
            self.forward(raw)

    def write(self) -> None:
        """Send queued messages until the queue is closed or a write fails."""
        logger.info("ws write loop start for %s", self.uuid)
        while (back := self.send_back.get()) is not None:
            try:
                self.conn.write_message(back.message)
            except Exception as exc:  # any socket failure ends the session
                logger.error("write to %s failed: %s", self.uuid, exc)
                return
            self._service.store.mark_sent(back.uuid)

    def forward(self, raw: bytes | str) -> bool:
        """Hand one raw message to the hub; False if it was refused as too busy."""
        data = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
        try:
            parse_request(ChatMessageRequest, data)
        except RequestError as exc:
            logger.error("malformed message from %s: %s", self.uuid, exc)

        service = self._service
        if service.mode is MessageMode.KAFKA:
            service.topic.write(str(service.partition).encode("utf-8"), data)
            logger.info("message published: %s", data.decode("utf-8", "replace"))
            return True

        server = service.chat_server
        # Flush earlier overflow first so order is kept.
        while not server.transmit.full():
            try:
                pending = self.send_to.get_nowait()
            except queue.Empty:
                break
            server.send_message_to_transmit(pending)
        if not server.transmit.full():
            server.send_message_to_transmit(data)
            return True
        if not self.send_to.full():
            self.send_to.put_nowait(data)
            return True
        try:
            self.conn.write_message(BUSY_TEXT.encode("utf-8"))
        except Exception as exc:  # any socket failure is only logged here
            logger.error("write to %s failed: %s", self.uuid, exc)
        return False


class ChatService:
    """Creates clients on login and tears them down on logout."""

    def __init__(
        self,
        mode: MessageMode | str,
        store: MessageStore,
        *,
        chat_server: ChatServer | None = None,
        kafka_server: KafkaChatServer | None = None,
        topic: ChatTopic | None = None,
        partition: int = 0,
        channel_size: int = CHANNEL_SIZE,
        run_threads: bool = True,
    ) -> None:
        self.mode = MessageMode(mode)
        if self.mode is MessageMode.CHANNEL and chat_server is None:
            raise ValueError("channel mode needs a chat server")
        if self.mode is MessageMode.KAFKA and (kafka_server is None or topic is None):
            raise ValueError("kafka mode needs a kafka server and a topic")
        self.store = store
        self.chat_server = chat_server
        self.kafka_server = kafka_server
        self.topic = topic
        self.partition = partition
        self.channel_size = channel_size
        self.run_threads = run_threads

    @property
    def _server(self) -> ChatServer | KafkaChatServer:
        return self.chat_server if self.mode is MessageMode.CHANNEL else self.kafka_server

    def new_client(self, conn: _Socket, client_id: str) -> Client:
        """Register a freshly connected socket and start its loops."""
        if not client_id:
            raise ValueError("client id is empty")
        client = Client(client_id, conn, self)
        self._server.send_client_to_login(client)
        if self.run_threads:
            threading.Thread(target=client.read, name=f"ws-read-{client_id}", daemon=True).start()
            threading.Thread(target=client.write, name=f"ws-write-{client_id}", daemon=True).start()
        logger.info("ws connected: %s", client_id)
        return client

    def client_logout(self, client_id: str) -> str:
        """Log a client out and close its socket; unknown ids succeed quietly."""
        server = self._server
        client = server.clients.get(client_id)
        if client is not None:
            server.send_client_to_logout(client)
            client.conn.close()
            client.send_back.put(None)
        return LOGOUT_OK