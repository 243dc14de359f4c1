"""Response bodies returned to clients, and their JSON encoding."""

from __future__ import annotations

import json
from dataclasses import field, fields, is_dataclass, make_dataclass
from typing import Any, Mapping

# Characters escaped inside JSON strings so output is safe to embed in HTML.
_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_KINDS = {
    "str": (str, ""),
    "raw": (str, ""),
    "int": (int, 0),
    "bool": (bool, False),
}


class _Respond:
    """Marker base for response bodies."""


def _respond(name: str, *specs: str) -> type:
    """Build a response dataclass from 'name[:kind]' specs; kind defaults to str."""
    spec_fields = []
    for spec in specs:
        attr, _, kind = spec.partition(":")
        kind = kind or "str"
        tp, default = _KINDS[kind]
        spec_fields.append((attr, tp, field(default=default, metadata={"raw": kind == "raw"})))
    cls = make_dataclass(name, spec_fields, bases=(_Respond,))
    cls.__module__ = __name__
    return cls


def _value(value: Any) -> Any:
    if isinstance(value, _Respond):
        return to_dict(value)
    if isinstance(value, (list, tuple)):
        return [_value(item) for item in value]
    return value


def to_dict(obj: Any) -> Any:
    """JSON-ready form of a response, or of a list of responses.

    Raw JSON fields are decoded in place; an empty one becomes null.
    """
    if not isinstance(obj, _Respond):
        if isinstance(obj, (list, tuple)):
            return [_value(item) for item in obj]
        raise TypeError(f"{obj!r} is not a response")
    result: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if f.metadata.get("raw"):
            result[f.name] = json.loads(value) if value else None
        else:
            result[f.name] = _value(value)
    return result


def to_json(obj: Any) -> str:
    """Compact JSON with <, >, & and line separators escaped."""
    text = json.dumps(to_dict(obj), ensure_ascii=False, separators=(",", ":"))
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in text)


def from_dict(cls: type, data: Mapping[str, Any]) -> Any:
    """Build a response of type cls from its JSON-ready form."""
    if not (isinstance(cls, type) and issubclass(cls, _Respond) and is_dataclass(cls)):
        raise TypeError(f"{cls!r} is not a response type")
    if not isinstance(data, Mapping):
        raise ValueError(f"expected a mapping, got {data!r}")
    values: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.metadata.get("raw"):
            values[f.name] = "" if value is None else json.dumps(value, separators=(",", ":"))
            continue
        expected = f.type
        if expected is int and isinstance(value, bool):
            raise ValueError(f"{f.name}: expected an integer, got {value!r}")
        if not isinstance(value, expected):
            raise ValueError(f"{f.name}: expected {expected.__name__}, got {value!r}")
        values[f.name] = value
    return cls(**values)


_MESSAGE_FIELDS = (
    "send_id",
    "send_name",
    "send_avatar",
    "receive_id",
    "type:int",
    "content",
    "url",
    "file_type",
    "file_name",
    "file_size",
    "created_at",
)
_USER_FIELDS = (
    "uuid",
    "nickname",
    "telephone",
    "avatar",
    "email",
    "gender:int",
    "birthday",
    "signature",
    "created_at",
    "is_admin:int",
    "status:int",
)
_APPLY_FIELDS = ("contact_id", "contact_name", "contact_avatar", "message")
_GROUP_ENTRY_FIELDS = ("group_id", "group_name", "avatar")

AddGroupListRespond = _respond("AddGroupListRespond", *_APPLY_FIELDS)
AVMessageRespond = _respond("AVMessageRespond", *_MESSAGE_FIELDS, "av_data")
GetContactInfoRespond = _respond(
    "GetContactInfoRespond",
    "contact_id",
    "contact_name",
    "contact_avatar",
    "contact_phone",
    "contact_email",
    "contact_gender:int",
    "contact_signature",
    "contact_birthday",
    "contact_notice",
    "contact_members:raw",
    "contact_member_cnt:int",
    "contact_owner_id",
    "contact_add_mode:int",
)
GetCurContactListInChatRoomRespond = _respond("GetCurContactListInChatRoomRespond", "contact_id")
GetGroupMessageListRespond = _respond("GetGroupMessageListRespond", *_MESSAGE_FIELDS)
GetGroupInfoRespond = _respond(
    "GetGroupInfoRespond",
    "uuid",
    "name",
    "notice",
    "member_cnt:int",
    "owner_id",
    "add_mode:int",
    "status:int",
    "avatar",
    "is_deleted:bool",
)
GetGroupListRespond = _respond(
    "GetGroupListRespond", "uuid", "name", "owner_id", "status:int", "is_deleted:bool"
)
GetGroupMemberListRespond = _respond("GetGroupMemberListRespond", "user_id", "nickname", "avatar")
GetMessageListRespond = _respond("GetMessageListRespond", *_MESSAGE_FIELDS)
GetUserInfoRespond = _respond("GetUserInfoRespond", *_USER_FIELDS)
GetUserListRespond = _respond(
    "GetUserListRespond",
    "uuid",
    "nickname",
    "telephone",
    "status:int",
    "is_admin:int",
    "is_deleted:bool",
)
GroupSessionListRespond = _respond(
    "GroupSessionListRespond", "session_id", "group_name", "group_id", "avatar"
)
LoadMyGroupRespond = _respond("LoadMyGroupRespond", *_GROUP_ENTRY_FIELDS)
LoadMyJoinedGroupRespond = _respond("LoadMyJoinedGroupRespond", *_GROUP_ENTRY_FIELDS)
LoginRespond = _respond("LoginRespond", *_USER_FIELDS)
MyUserListRespond = _respond("MyUserListRespond", "user_id", "user_name", "avatar")
NewContactListRespond = _respond("NewContactListRespond", *_APPLY_FIELDS)
RegisterRespond = _respond("RegisterRespond", *_USER_FIELDS)
UserSessionListRespond = _respond(
    "UserSessionListRespond", "session_id", "avatar", "user_id", "user_name"
)