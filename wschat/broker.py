"""Broker-backed hub: chat messages arrive through a topic instead of a queue."""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from .hub import (
    DEFAULT_CACHE_TTL,
    LOGOUT_TEXT,
    WELCOME_TEXT,
    Cache,
    MessageRouter,
    MessageStore,
    Peer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopicRecord:
    """One record read from a topic."""

    topic: str
    partition: int
    offset: int
    key: bytes
    value: bytes


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


class ChatTopic:
    """An in-process, single-partition topic with a writer and a reader side."""

    def __init__(self, name: str = "chat", partition: int = 0) -> None:
        self.name = name
        self.partition = partition
        self._records: deque[TopicRecord] = deque()
        self._next_offset = 0
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, key: bytes | str, value: bytes | str) -> TopicRecord:
        """Append a record; raises RuntimeError once the topic is closed."""
        with self._cond:
            if self._closed:
                raise RuntimeError(f"topic {self.name!r} is closed")
            record = TopicRecord(
                self.name, self.partition, self._next_offset, _as_bytes(key), _as_bytes(value)
            )
            self._next_offset += 1
            self._records.append(record)
            self._cond.notify_all()
            return record

    def read(self, timeout: float | None = None) -> TopicRecord | None:
        """Next record, or None if none arrives within timeout.

        Raises EOFError when the topic is closed and drained.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._records or self._closed, timeout)
            if self._records:
                return self._records.popleft()
            if self._closed:
                raise EOFError(f"topic {self.name!r} is closed")
            return None

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class KafkaChatServer:
    """Hub whose logins and logouts flow through queues and chat through a topic."""

    def __init__(
        self,
        store: MessageStore,
        cache: Cache,
        topic: ChatTopic,
        *,
        cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        now: Callable[[], datetime] = datetime.now,
        poll_interval: float = 0.1,
    ) -> None:
        self.clients: dict[str, Peer] = {}
        self._lock = threading.RLock()
        self.router = MessageRouter(
            store, cache, self.clients, self._lock, cache_ttl=cache_ttl, now=now
        )
        self.topic = topic
        self.login: queue.Queue = queue.Queue()
        self.logout: queue.Queue = queue.Queue()
        self._poll_interval = poll_interval
        self._cond = threading.Condition()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, q: queue.Queue, client: Peer) -> None:
        if self._closed:
            raise RuntimeError("chat server is closed")
        q.put(client)
        with self._cond:
            self._cond.notify_all()

    def start(self) -> None:
        """Consume the topic and handle logins and logouts until closed."""
        reader = threading.Thread(target=self._consume, name="topic-reader", daemon=True)
        reader.start()
        try:
            while True:
                with self._cond:
                    while not self._closed and self.login.empty() and self.logout.empty():
                        self._cond.wait()
                    if self._closed:
                        return
                self._handle_sessions()
        finally:
            reader.join()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def send_client_to_login(self, client: Peer) -> None:
        self._put(self.login, client)

    def send_client_to_logout(self, client: Peer) -> None:
        self._put(self.logout, client)

    def remove_client(self, uuid: str) -> None:
        with self._lock:
            self.clients.pop(uuid, None)

    def process_pending(self) -> int:
        """Handle queued logins, logouts and available records; returns the count."""
        handled = self._handle_sessions()
        while True:
            try:
                record = self.topic.read(0)
            except EOFError:
                break
            if record is None:
                break
            self._handle_record(record)
            handled += 1
        return handled

    def _consume(self) -> None:
        while not self._closed:
            try:
                record = self.topic.read(self._poll_interval)
            except EOFError:
                return
            if record is not None:
                self._handle_record(record)

    def _handle_record(self, record: TopicRecord) -> None:
        logger.info(
            "topic=%s, partition=%d, offset=%d, key=%s, value=%s",
            record.topic,
            record.partition,
            record.offset,
            record.key.decode("utf-8", "replace"),
            record.value.decode("utf-8", "replace"),
        )
        try:
            self.router.route(record.value)
        except (ValueError, LookupError) as exc:
            logger.error("dropping message at offset %d: %s", record.offset, exc)

    def _handle_sessions(self) -> int:
        handled = 0
        while True:
            try:
                client = self.login.get_nowait()
            except queue.Empty:
                break
            with self._lock:
                self.clients[client.uuid] = client
            logger.debug("user %s logged in", client.uuid)
            self._notify(client, WELCOME_TEXT)
            handled += 1
        while True:
            try:
                client = self.logout.get_nowait()
            except queue.Empty:
                break
            with self._lock:
                self.clients.pop(client.uuid, None)
            logger.info("user %s logged out", client.uuid)
            self._notify(client, LOGOUT_TEXT)
            handled += 1
        return handled

    @staticmethod
    def _notify(client: Peer, text: str) -> None:
        try:
            client.conn.write_message(text.encode("utf-8"))
        except Exception as exc:  # a broken socket must not stop the hub
            logger.error("write to %s failed: %s", client.uuid, exc)