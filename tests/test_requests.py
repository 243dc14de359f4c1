import pytest

from wschat.requests import (
    AbleUsersRequest,
    AVData,
    ChatMessageRequest,
    LoginRequest,
    MessageRequest,
    OwnlistRequest,
    RemoveGroupMembersRequest,
    RequestError,
    SetGroupsStatusRequest,
    parse_request,
)


def test_parse_text_payload():
    req = parse_request(OwnlistRequest, '{"owner_id": "U1"}')
    assert req == OwnlistRequest(owner_id="U1")


def test_parse_bytes_payload():
    req = parse_request(LoginRequest, b'{"telephone": "t-1", "password": "password"}')
    assert req.telephone == "t-1"
    assert req.password == "password"


def test_parse_mapping_payload():
    req = parse_request(RemoveGroupMembersRequest, {"group_id": "G1", "owner_id": "U1", "uuid_list": ["U2", "U3"]})
    assert req.group_id == "G1"
    assert req.uuid_list == ["U2", "U3"]


def test_missing_fields_keep_zero_values():
    req = parse_request(ChatMessageRequest, "{}")
    assert req == ChatMessageRequest()
    assert req.type == 0
    assert req.content == ""


def test_av_data_uses_camel_case_key():
    req = parse_request(AVData, '{"messageId": "PROXY", "type": "start_call"}')
    assert req.message_id == "PROXY"
    assert req.type == "start_call"


def test_keys_match_case_insensitively():
    req = parse_request(OwnlistRequest, {"Owner_ID": "U9"})
    assert req.owner_id == "U9"


def test_unknown_keys_are_ignored():
    req = parse_request(OwnlistRequest, {"owner_id": "U1", "extra": [1, 2]})
    assert req == OwnlistRequest(owner_id="U1")


def test_null_leaves_scalar_default_and_empties_list():
    req = parse_request(AbleUsersRequest, '{"uuid_list": null, "is_admin": null}')
    assert req.uuid_list == []
    assert req.is_admin == 0


def test_null_list_element_becomes_empty_string():
    req = parse_request(SetGroupsStatusRequest, '{"uuid_list": ["G1", null], "status": 1}')
    assert req.uuid_list == ["G1", ""]
    assert req.status == 1


def test_integer_fields():
    req = parse_request(MessageRequest, '{"type": 2, "file_size": 4096}')
    assert (req.type, req.file_size) == (2, 4096)


@pytest.mark.parametrize("payload", ["", "{", "not json", b"\xff\xfe"])
def test_invalid_json_raises(payload):
    with pytest.raises(RequestError):
        parse_request(OwnlistRequest, payload)


@pytest.mark.parametrize("payload", ["[]", "1", '"text"', "null"])
def test_non_object_raises(payload):
    with pytest.raises(RequestError):
        parse_request(OwnlistRequest, payload)


@pytest.mark.parametrize(
    "payload",
    [
        '{"owner_id": 5}',
        '{"owner_id": true}',
        '{"owner_id": ["U1"]}',
    ],
)
def test_string_field_type_errors(payload):
    with pytest.raises(RequestError):
        parse_request(OwnlistRequest, payload)


@pytest.mark.parametrize(
    "payload",
    [
        '{"type": "0"}',
        '{"type": 1.5}',
        '{"type": 1.0}',
        '{"type": true}',
        '{"type": 128}',
        '{"type": -129}',
    ],
)
def test_int8_field_errors(payload):
    with pytest.raises(RequestError):
        parse_request(ChatMessageRequest, payload)


def test_int8_bounds_accepted():
    assert parse_request(ChatMessageRequest, '{"type": 127}').type == 127
    assert parse_request(ChatMessageRequest, '{"type": -128}').type == -128


def test_list_field_errors():
    with pytest.raises(RequestError):
        parse_request(AbleUsersRequest, '{"uuid_list": "U1"}')
    with pytest.raises(RequestError):
        parse_request(AbleUsersRequest, '{"uuid_list": [1]}')


def test_request_error_is_value_error():
    with pytest.raises(ValueError):
        parse_request(OwnlistRequest, "[")


def test_non_request_class_rejected():
    with pytest.raises(TypeError):
        parse_request(dict, "{}")