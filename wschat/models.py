"""Persistent records of the chat service and their status codes."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import ClassVar, Iterable

DEFAULT_AVATAR = "https://cube.elemecdn.com/0/88/03b0d39583f48206768a7534e55bcpng.png"
DEFAULT_SESSION_AVATAR = "default_avatar.png"


class MessageType(IntEnum):
    TEXT = 0
    VOICE = 1
    FILE = 2
    AUDIO_OR_VIDEO = 3


class MessageStatus(IntEnum):
    UNSENT = 0
    SENT = 1


class ContactType(IntEnum):
    USER = 0
    GROUP = 1


class ContactStatus(IntEnum):
    NORMAL = 0
    BLACK = 1
    BE_BLACK = 2
    DELETE = 3
    BE_DELETE = 4
    SILENCE = 5
    QUIT_GROUP = 6
    KICK_OUT_GROUP = 7


class ContactApplyStatus(IntEnum):
    PENDING = 0
    AGREE = 1
    REFUSE = 2
    BLACK = 3


class GroupAddMode(IntEnum):
    DIRECT = 0
    AUDIT = 1


class GroupStatus(IntEnum):
    NORMAL = 0
    DISABLE = 1
    DISMISS = 2


class UserStatus(IntEnum):
    NORMAL = 0
    DISABLE = 1


class _SoftDeleted:
    deleted_at: datetime | None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass
class ContactApply(_SoftDeleted):
    TABLE_NAME: ClassVar[str] = "contact_apply"

    uuid: str = ""
    user_id: str = ""
    contact_id: str = ""
    contact_type: ContactType = ContactType.USER
    status: ContactApplyStatus = ContactApplyStatus.PENDING
    message: str = ""
    last_apply_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None
    id: int | None = None


@dataclass
class GroupInfo(_SoftDeleted):
    TABLE_NAME: ClassVar[str] = "group_info"

    uuid: str = ""
    name: str = ""
    notice: str = ""
    members: str = ""
    member_cnt: int = 1
    owner_id: str = ""
    add_mode: GroupAddMode = GroupAddMode.DIRECT
    avatar: str = DEFAULT_AVATAR
    status: GroupStatus = GroupStatus.NORMAL
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None
    id: int | None = None

    def member_ids(self) -> list[str]:
        """Decode the JSON member list; an empty column means no members."""
        if not self.members:
            return []
        try:
            decoded = json.loads(self.members)
        except json.JSONDecodeError as exc:
            raise ValueError(f"malformed member list: {exc}") from exc
        if decoded is None:
            return []
        if not isinstance(decoded, list) or not all(isinstance(m, str) for m in decoded):
            raise ValueError("member list must be a JSON array of strings")
        return decoded

    def set_members(self, members: Iterable[str]) -> None:
        """Store the member ids as a JSON array."""
        self.members = json.dumps(list(members))


@dataclass
class Message:
    TABLE_NAME: ClassVar[str] = "message"

    uuid: str = ""
    session_id: str = ""
    type: MessageType = MessageType.TEXT
    content: str = ""
    url: str = ""
    send_id: str = ""
    send_name: str = ""
    send_avatar: str = ""
    receive_id: str = ""
    file_type: str = ""
    file_name: str = ""
    file_size: str = ""
    status: MessageStatus = MessageStatus.UNSENT
    created_at: datetime = field(default_factory=datetime.now)
    send_at: datetime | None = None
    av_data: str = ""
    id: int | None = None


@dataclass
class Session(_SoftDeleted):
    TABLE_NAME: ClassVar[str] = "session"

    uuid: str = ""
    send_id: str = ""
    receive_id: str = ""
    receive_name: str = ""
    avatar: str = DEFAULT_SESSION_AVATAR
    last_message: str = ""
    last_message_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None
    id: int | None = None


@dataclass
class UserContact(_SoftDeleted):
    TABLE_NAME: ClassVar[str] = "user_contact"

    user_id: str = ""
    contact_id: str = ""
    contact_type: ContactType = ContactType.USER
    status: ContactStatus = ContactStatus.NORMAL
    created_at: datetime = field(default_factory=datetime.now)
    update_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None
    id: int | None = None


@dataclass
class UserInfo(_SoftDeleted):
    TABLE_NAME: ClassVar[str] = "user_info"

    uuid: str = ""
    nickname: str = ""
    telephone: str = ""
    email: str = ""
    avatar: str = DEFAULT_AVATAR
    gender: int = 0
    signature: str = ""
    password: str = ""
    birthday: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None
    last_online_at: datetime | None = None
    last_offline_at: datetime | None = None
    is_admin: int = 0
    status: UserStatus = UserStatus.NORMAL
    id: int | None = None