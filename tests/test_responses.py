import json

import pytest

from wschat.responses import (
    AVMessageRespond,
    GetContactInfoRespond,
    GetCurContactListInChatRoomRespond,
    GetGroupInfoRespond,
    GetMessageListRespond,
    UserSessionListRespond,
    from_dict,
    to_dict,
    to_json,
)


def test_single_field_json_is_compact():
    assert to_json(GetCurContactListInChatRoomRespond(contact_id="U1")) == '{"contact_id":"U1"}'


def test_message_list_keys_follow_declared_order():
    keys = list(to_dict(GetMessageListRespond()).keys())
    assert keys == [
        "send_id", "send_name", "send_avatar", "receive_id", "type", "content",
        "url", "file_type", "file_name", "file_size", "created_at",
    ]


def test_user_session_list_key_names():
    data = to_dict(UserSessionListRespond(session_id="S1", user_name="alice"))
    assert list(data) == ["session_id", "avatar", "user_id", "user_name"]
    assert data["user_name"] == "alice"


def test_html_characters_are_escaped():
    text = to_json(GetMessageListRespond(content="<a>&"))
    assert "\\u003ca\\u003e\\u0026" in text
    assert json.loads(text)["content"] == "<a>&"


def test_non_ascii_kept_verbatim():
    text = to_json(GetMessageListRespond(content="你好"))
    assert "你好" in text


def test_raw_members_are_embedded():
    rsp = GetContactInfoRespond(contact_id="G1", contact_members='["U1","U2"]')
    assert to_dict(rsp)["contact_members"] == ["U1", "U2"]
    assert json.loads(to_json(rsp))["contact_members"] == ["U1", "U2"]


def test_empty_raw_members_become_null():
    assert to_dict(GetContactInfoRespond())["contact_members"] is None


def test_list_of_responses():
    items = [GetMessageListRespond(content="a"), GetMessageListRespond(content="b")]
    decoded = json.loads(to_json(items))
    assert [item["content"] for item in decoded] == ["a", "b"]


def test_round_trip_through_dict():
    rsp = AVMessageRespond(send_id="U1", receive_id="U2", type=3, av_data='{"type":"start_call"}')
    assert from_dict(AVMessageRespond, to_dict(rsp)) == rsp


def test_round_trip_through_json():
    rsp = GetGroupInfoRespond(uuid="G1", name="team", member_cnt=3, is_deleted=True)
    assert from_dict(GetGroupInfoRespond, json.loads(to_json(rsp))) == rsp


def test_raw_field_round_trip():
    rsp = GetContactInfoRespond(contact_id="G1", contact_members='["U1"]', contact_member_cnt=1)
    assert from_dict(GetContactInfoRespond, to_dict(rsp)) == rsp


def test_from_dict_missing_keys_use_defaults():
    rsp = from_dict(GetGroupInfoRespond, {"uuid": "G1"})
    assert rsp == GetGroupInfoRespond(uuid="G1")


def test_from_dict_rejects_wrong_types():
    with pytest.raises(ValueError):
        from_dict(GetGroupInfoRespond, {"member_cnt": "3"})
    with pytest.raises(ValueError):
        from_dict(GetGroupInfoRespond, {"member_cnt": True})
    with pytest.raises(ValueError):
        from_dict(GetGroupInfoRespond, {"is_deleted": 1})


def test_from_dict_rejects_non_mapping():
    with pytest.raises(ValueError):
        from_dict(GetGroupInfoRespond, ["G1"])


def test_from_dict_rejects_non_response_class():
    with pytest.raises(TypeError):
        from_dict(dict, {})


def test_to_dict_rejects_non_response():
    with pytest.raises(TypeError):
        to_dict(42)