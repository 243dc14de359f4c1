"""In-process chat hub: the registry of online clients and message routing."""

from __future__ import annotations

import json
import logging
import queue
import secrets
import string
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterator, MutableMapping, Protocol

from .models import DEFAULT_AVATAR, GroupInfo, Message, MessageStatus, MessageType
from .requests import AVData, ChatMessageRequest, RequestError, parse_request
from .responses import (
    AVMessageRespond,
    GetGroupMessageListRespond,
    GetMessageListRespond,
    to_dict,
    to_json,
)

logger = logging.getLogger(__name__)

CHANNEL_SIZE = 100
DEFAULT_CACHE_TTL = timedelta(minutes=1)
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
WELCOME_TEXT = "欢迎来到websocket聊天服务器"
LOGOUT_TEXT = "已退出登录"
PROXY_MESSAGE_ID = "PROXY"
PROXY_CALL_TYPES = frozenset({"start_call", "receive_call", "reject_call"})

_UUID_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class MessageBack:
    """An encoded message queued for one client, with the stored message's uuid."""

    message: bytes
    uuid: str


class Connection(Protocol):
    def write_message(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class MessageStore(Protocol):
    def save(self, message: Message) -> None: ...

    def mark_sent(self, uuid: str) -> bool: ...

    def group_members(self, group_id: str) -> list[str]: ...


class Cache(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl: timedelta | None) -> None: ...


class InMemoryMessageStore:
    """Messages and groups kept in dictionaries."""

    def __init__(self) -> None:
        self.messages: dict[str, Message] = {}
        self.groups: dict[str, GroupInfo] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def save(self, message: Message) -> None:
        with self._lock:
            if message.id is None:
                message.id = self._next_id
                self._next_id += 1
            self.messages[message.uuid] = message

    def mark_sent(self, uuid: str) -> bool:
        """Mark a message as sent; unknown uuids are ignored."""
        with self._lock:
            message = self.messages.get(uuid)
            if message is None:
                return False
            message.status = MessageStatus.SENT
            return True

    def group_members(self, group_id: str) -> list[str]:
        """Member ids of a group; raises KeyError for an unknown group."""
        with self._lock:
            group = self.groups.get(group_id)
        if group is None:
            raise KeyError(f"group {group_id!r} not found")
        return group.member_ids()

    def add_group(self, group: GroupInfo) -> None:
        with self._lock:
            self.groups[group.uuid] = group


class InMemoryCache:
    """A string key-value cache with optional expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._items: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        """The cached value, or None when absent or expired."""
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires = item
            if expires is not None and self._clock() >= expires:
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        expires = None if ttl is None else self._clock() + ttl.total_seconds()
        with self._lock:
            self._items[key] = (value, expires)


@dataclass(eq=False)
class Peer:
    """An online client as the hub sees it: its id, socket and outgoing queue."""

    uuid: str
    conn: Connection
    send_back: queue.Queue = field(default_factory=lambda: queue.Queue(CHANNEL_SIZE))


def normalize_path(path: str) -> str:
    """Strip everything before '/static/' so stored avatars carry no host prefix."""
    if path == DEFAULT_AVATAR:
        return path
    index = path.find("/static/")
    if index < 0:
        raise ValueError(f"invalid avatar path: {path!r}")
    return path[index:]


def new_message_uuid() -> str:
    """A fresh message id: 'M' followed by 11 random characters."""
    return "M" + "".join(secrets.choice(_UUID_ALPHABET) for _ in range(11))


class MessageRouter:
    """Stores incoming chat messages and fans them out to online peers."""

    def __init__(
        self,
        store: MessageStore,
        cache: Cache,
        clients: MutableMapping[str, Peer],
        lock: threading.RLock | threading.Lock,
        *,
        cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._clients = clients
        self._lock = lock
        self._cache_ttl = cache_ttl
        self._now = now

    def route(self, data: bytes | str) -> MessageBack | None:
        """Handle one raw chat message; returns what was queued, if anything."""
        request = parse_request(ChatMessageRequest, data)
        if not request.receive_id:
            raise RequestError("receive_id is empty")
        if request.type == MessageType.TEXT:
            return self._route_text(request)
        if request.type == MessageType.FILE:
            return self._route_file(request)
        if request.type == MessageType.AUDIO_OR_VIDEO:
            return self._route_call(request)
        return None

    def _new_message(self, request: ChatMessageRequest, **values) -> Message:
        return Message(
            uuid=new_message_uuid(),
            session_id=request.session_id,
            type=MessageType(request.type),
            send_id=request.send_id,
            send_name=request.send_name,
            send_avatar=request.send_avatar,
            receive_id=request.receive_id,
            status=MessageStatus.UNSENT,
            created_at=self._now(),
            **values,
        )

    def _route_text(self, request: ChatMessageRequest) -> MessageBack | None:
        message = self._new_message(request, content=request.content, file_size="0B")
        message.send_avatar = normalize_path(message.send_avatar)
        self._store.save(message)
        if message.receive_id.startswith("U"):
            return self._deliver_private(message, request)
        if message.receive_id.startswith("G"):
            return self._deliver_group(message, request)
        return None

    def _route_file(self, request: ChatMessageRequest) -> MessageBack:
        message = self._new_message(
            request,
            url=request.url,
            file_size=request.file_size,
            file_type=request.file_type,
            file_name=request.file_name,
        )
        message.send_avatar = normalize_path(message.send_avatar)
        self._store.save(message)
        if message.receive_id.startswith("U"):
            return self._deliver_private(message, request)
        return self._deliver_group(message, request)

    def _route_call(self, request: ChatMessageRequest) -> MessageBack | None:
        try:
            av_data = parse_request(AVData, request.av_data)
        except RequestError as exc:
            logger.error("bad call data: %s", exc)
            av_data = AVData()
        message = self._new_message(request, av_data=request.av_data)
        if av_data.message_id == PROXY_MESSAGE_ID and av_data.type in PROXY_CALL_TYPES:
            message.send_avatar = normalize_path(message.send_avatar)
            self._store.save(message)
        if not request.receive_id.startswith("U"):
            return None
        rsp = AVMessageRespond(
            send_id=message.send_id,
            send_name=message.send_name,
            send_avatar=message.send_avatar,
            receive_id=message.receive_id,
            type=int(message.type),
            content=message.content,
            url=message.url,
            file_type=message.file_type,
            file_name=message.file_name,
            file_size=message.file_size,
            created_at=message.created_at.strftime(TIME_FORMAT),
            av_data=message.av_data,
        )
        back = MessageBack(to_json(rsp).encode("utf-8"), message.uuid)
        # Calls are not echoed to the caller.
        with self._lock:
            receiver = self._clients.get(message.receive_id)
            if receiver is not None:
                receiver.send_back.put(back)
        return back

    @staticmethod
    def _listing(cls, message: Message, request: ChatMessageRequest):
        return cls(
            send_id=message.send_id,
            send_name=message.send_name,
            send_avatar=request.send_avatar,
            receive_id=message.receive_id,
            type=int(message.type),
            content=message.content,
            url=message.url,
            file_type=message.file_type,
            file_name=message.file_name,
            file_size=message.file_size,
            created_at=message.created_at.strftime(TIME_FORMAT),
        )

    def _echo(self, send_id: str, back: MessageBack) -> None:
        sender = self._clients.get(send_id)
        if sender is None:
            logger.warning("sender %s is not online", send_id)
            return
        sender.send_back.put(back)

    def _deliver_private(self, message: Message, request: ChatMessageRequest) -> MessageBack:
        rsp = self._listing(GetMessageListRespond, message, request)
        back = MessageBack(to_json(rsp).encode("utf-8"), message.uuid)
        with self._lock:
            receiver = self._clients.get(message.receive_id)
            if receiver is not None:
                receiver.send_back.put(back)
            self._echo(message.send_id, back)
        self._append_cached(f"message_list_{message.send_id}_{message.receive_id}", rsp)
        return back

    def _deliver_group(self, message: Message, request: ChatMessageRequest) -> MessageBack:
        rsp = self._listing(GetGroupMessageListRespond, message, request)
        back = MessageBack(to_json(rsp).encode("utf-8"), message.uuid)
        try:
            members = self._store.group_members(message.receive_id)
        except (LookupError, ValueError) as exc:
            logger.error("cannot load members of %s: %s", message.receive_id, exc)
            members = []
        with self._lock:
            for member in members:
                if member != message.send_id:
                    receiver = self._clients.get(member)
                    if receiver is not None:
                        receiver.send_back.put(back)
                else:
                    self._echo(message.send_id, back)
        self._append_cached(f"group_messagelist_{message.receive_id}", rsp)
        return back

    def _append_cached(self, key: str, rsp) -> None:
        cached = self._cache.get(key)
        if cached is None:
            return
        try:
            entries = json.loads(cached)
        except ValueError as exc:
            logger.error("corrupt cache entry %s: %s", key, exc)
            entries = []
        if not isinstance(entries, list):
            entries = []
        entries.append(to_dict(rsp))
        self._cache.set(key, to_json(entries), self._cache_ttl)


def _drain(q: queue.Queue) -> Iterator:
    while True:
        try:
            yield q.get_nowait()
        except queue.Empty:
            return


class ChatServer:
    """Channel-mode hub: logins, logouts and chat messages flow through queues."""

    def __init__(
        self,
        store: MessageStore,
        cache: Cache,
        *,
        channel_size: int = CHANNEL_SIZE,
        cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.clients: dict[str, Peer] = {}
        self._lock = threading.RLock()
        self.router = MessageRouter(
            store, cache, self.clients, self._lock, cache_ttl=cache_ttl, now=now
        )
        self.channel_size = channel_size
        self.transmit: queue.Queue = queue.Queue(channel_size)
        self.login: queue.Queue = queue.Queue(channel_size)
        self.logout: queue.Queue = queue.Queue(channel_size)
        self._cond = threading.Condition()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _idle(self) -> bool:
        return self.login.empty() and self.logout.empty() and self.transmit.empty()

    def _put(self, q: queue.Queue, item) -> None:
        if self._closed:
            raise RuntimeError("chat server is closed")
        q.put(item)
        with self._cond:
            self._cond.notify_all()

    def start(self) -> None:
        """Process events until the server is closed."""
        while True:
            with self._cond:
                while not self._closed and self._idle():
                    self._cond.wait()
                if self._closed:
                    return
            self.process_pending()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def send_client_to_login(self, client: Peer) -> None:
        self._put(self.login, client)

    def send_client_to_logout(self, client: Peer) -> None:
        self._put(self.logout, client)

    def send_message_to_transmit(self, message: bytes) -> None:
        self._put(self.transmit, message)

    def remove_client(self, uuid: str) -> None:
        with self._lock:
            self.clients.pop(uuid, None)

    def process_pending(self) -> int:
        """Handle every queued event; returns how many were handled."""
        handled = 0
        for client in _drain(self.login):
            self._register(client)
            handled += 1
        for client in _drain(self.logout):
            self._unregister(client)
            handled += 1
        for data in _drain(self.transmit):
            try:
                self.router.route(data)
            except (ValueError, LookupError) as exc:
                logger.error("dropping message: %s", exc)
            handled += 1
        return handled

    def _register(self, client: Peer) -> None:
        with self._lock:
            self.clients[client.uuid] = client
        logger.debug("user %s logged in", client.uuid)
        self._notify(client, WELCOME_TEXT)

    def _unregister(self, client: Peer) -> None:
        with self._lock:
            self.clients.pop(client.uuid, None)
        logger.info("user %s logged out", client.uuid)
        self._notify(client, LOGOUT_TEXT)

    @staticmethod
    def _notify(client: Peer, text: str) -> None:
        try:
            client.conn.write_message(text.encode("utf-8"))
        except Exception as exc:  # a broken socket must not stop the hub
            logger.error("write to %s failed: %s", client.uuid, exc)