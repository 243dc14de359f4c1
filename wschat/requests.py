"""Request bodies accepted by the HTTP and websocket endpoints."""

from __future__ import annotations

import json
import re
from dataclasses import field, fields, make_dataclass
from typing import Any, Mapping

_RANGES = {
    "int8": (-(2**7), 2**7 - 1),
    "int": (-(2**63), 2**63 - 1),
}


class RequestError(ValueError):
    """A request body that cannot be decoded into the expected shape."""


class _Request:
    """Marker base for decodable request bodies."""


_SKIP = object()


def _snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _request(name: str, *specs: str) -> type:
    """Build a request dataclass from 'json_key[:kind]' specs; kind defaults to str."""
    spec_fields = []
    for spec in specs:
        key, _, kind = spec.partition(":")
        kind = kind or "str"
        meta = {"json": key, "kind": kind}
        if kind == "strlist":
            spec_fields.append((_snake(key), list[str], field(default_factory=list, metadata=meta)))
        elif kind in _RANGES:
            spec_fields.append((_snake(key), int, field(default=0, metadata=meta)))
        else:
            spec_fields.append((_snake(key), str, field(default="", metadata=meta)))
    cls = make_dataclass(name, spec_fields, bases=(_Request,))
    cls.__module__ = __name__
    return cls


def _coerce(kind: str, key: str, value: Any) -> Any:
    if value is None:
        # JSON null leaves a scalar untouched and empties a list.
        return [] if kind == "strlist" else _SKIP
    if kind == "str":
        if not isinstance(value, str):
            raise RequestError(f"{key}: expected a string, got {value!r}")
        return value
    if kind in _RANGES:
        if isinstance(value, bool) or not isinstance(value, int):
            raise RequestError(f"{key}: expected an integer, got {value!r}")
        low, high = _RANGES[kind]
        if not low <= value <= high:
            raise RequestError(f"{key}: {value} out of range")
        return value
    if not isinstance(value, list):
        raise RequestError(f"{key}: expected an array of strings, got {value!r}")
    items = []
    for item in value:
        if item is None:
            items.append("")
        elif isinstance(item, str):
            items.append(item)
        else:
            raise RequestError(f"{key}: expected an array of strings, got {value!r}")
    return items


def parse_request(cls: type, payload: Any) -> Any:
    """Decode a JSON body (text, bytes or an already decoded mapping) into cls.

    Keys match field names exactly or, failing that, case-insensitively;
    unknown keys are ignored and missing ones keep their zero value.
    """
    if not (isinstance(cls, type) and issubclass(cls, _Request)):
        raise TypeError(f"{cls!r} is not a request type")
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RequestError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise RequestError(f"expected a JSON object, got {payload!r}")

    exact = {f.metadata["json"]: f for f in fields(cls)}
    folded = {name.lower(): f for name, f in exact.items()}
    values: dict[str, Any] = {}
    for key, value in payload.items():
        if not isinstance(key, str):
            continue
        target = exact.get(key) or folded.get(key.lower())
        if target is None:
            continue
        converted = _coerce(target.metadata["kind"], key, value)
        if converted is not _SKIP:
            values[target.name] = converted
    return cls(**values)


_OWNER_CONTACT = ("owner_id", "contact_id")
_GROUP = ("group_id",)
_SEND_RECEIVE = ("send_id", "receive_id")
_OWNER = ("owner_id",)

AbleUsersRequest = _request("AbleUsersRequest", "uuid_list:strlist", "is_admin:int8")
AddGroupListRequest = _request("AddGroupListRequest", *_GROUP)
ApplyContactRequest = _request("ApplyContactRequest", *_OWNER_CONTACT, "message")
AVData = _request("AVData", "messageId", "type")
BlackApplyRequest = _request("BlackApplyRequest", *_OWNER_CONTACT)
BlackContactRequest = _request("BlackContactRequest", *_OWNER_CONTACT)
ChatMessageRequest = _request(
    "ChatMessageRequest",
    "session_id",
    "type:int8",
    "content",
    "url",
    "send_id",
    "send_name",
    "send_avatar",
    "receive_id",
    "file_size",
    "file_type",
    "file_name",
    "av_data",
)
CheckGroupAddModeRequest = _request("CheckGroupAddModeRequest", *_GROUP)
CreateGroupRequest = _request(
    "CreateGroupRequest", "owner_id", "name", "notice", "add_mode:int8", "avatar"
)
CreateSessionRequest = _request("CreateSessionRequest", *_SEND_RECEIVE)
DeleteContactRequest = _request("DeleteContactRequest", *_OWNER_CONTACT)
DeleteGroupsRequest = _request("DeleteGroupsRequest", "uuid_list:strlist")
DeleteSessionRequest = _request("DeleteSessionRequest", "owner_id", "session_id")
DismissGroupRequest = _request("DismissGroupRequest", "owner_id", "group_id")
EnterGroupDirectlyRequest = _request("EnterGroupDirectlyRequest", *_OWNER_CONTACT)
GetContactInfoRequest = _request("GetContactInfoRequest", "contact_id")
GetCurContactListInChatRoomRequest = _request(
    "GetCurContactListInChatRoomRequest", *_OWNER_CONTACT
)
GetGroupMessageListRequest = _request("GetGroupMessageListRequest", *_GROUP)
GetGroupInfoRequest = _request("GetGroupInfoRequest", *_GROUP)
GetGroupMemberListRequest = _request("GetGroupMemberListRequest", *_GROUP)
GetMessageListRequest = _request("GetMessageListRequest", "user_one_id", "user_two_id")
GetUserInfoListRequest = _request("GetUserInfoListRequest", *_OWNER)
GetUserInfoRequest = _request("GetUserInfoRequest", "uuid")
LeaveGroupRequest = _request("LeaveGroupRequest", "user_id", "group_id")
LoginRequest = _request("LoginRequest", "telephone", "password")
MessageRequest = _request(
    "MessageRequest",
    "type:int",
    "content",
    "url",
    "send_id",
    "receive_id",
    "file_type",
    "file_name",
    "file_size:int",
)
OpenSessionRequest = _request("OpenSessionRequest", *_SEND_RECEIVE)
OwnlistRequest = _request("OwnlistRequest", *_OWNER)
PassContactApplyRequest = _request("PassContactApplyRequest", *_OWNER_CONTACT)
RegisterRequest = _request("RegisterRequest", "telephone", "password", "nickname", "sms_code")
RemoveGroupMembersRequest = _request(
    "RemoveGroupMembersRequest", "group_id", "owner_id", "uuid_list:strlist"
)
SaveGroupRequest = _request(
    "SaveGroupRequest", "uuid", "owner_id", "name", "notice", "add_mode:int", "avatar"
)
SendSmsCodeRequest = _request("SendSmsCodeRequest", "telephone")
SetGroupsStatusRequest = _request("SetGroupsStatusRequest", "uuid_list:strlist", "status:int8")
SmsLoginRequest = _request("SmsLoginRequest", "telephone", "sms_code")
UpdateGroupInfoRequest = _request(
    "UpdateGroupInfoRequest", "owner_id", "uuid", "name", "avatar", "add_mode:int8", "notice"
)
UpdateUserInfoRequest = _request(
    "UpdateUserInfoRequest", "uuid", "email", "nickname", "birthday", "signature", "avatar"
)
WsLogoutRequest = _request("WsLogoutRequest", *_OWNER)