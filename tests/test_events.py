import json

from schemas.events import (
    JOIN_CHAT,
    MESSAGES_READ,
    NEW_MESSAGE,
    SETUP,
    JoinChatEvent,
    NewMessageEvent,
    SetupEvent,
    parse_event,
)


def frame(event, data):
    return json.dumps({"event": event, "data": data})


def test_setup_reads_underscore_id():
    result = parse_event(frame(SETUP, {"_id": "u1", "name": "Ada"}))

    assert result.ok
    assert isinstance(result.event, SetupEvent)
    assert result.event.data.id == "u1"
    assert result.payload == {"_id": "u1", "name": "Ada"}


def test_join_chat_takes_room_string():
    result = parse_event(frame(JOIN_CHAT, "c1"))

    assert isinstance(result.event, JoinChatEvent)
    assert result.event.data == "c1"


def test_new_message_keeps_full_payload():
    payload = {
        "_id": "m1",
        "content": "hi",
        "sender": {"_id": "u1", "name": "Ada"},
        "chat": {"_id": "c1", "users": [{"_id": "u1"}, {"_id": "u2"}, "u3", {"_id": "u2"}]},
    }

    result = parse_event(frame(NEW_MESSAGE, payload))

    assert isinstance(result.event, NewMessageEvent)
    assert result.event.data.chat.participant_ids() == ["u1", "u2", "u3"]
    assert result.payload == payload


def test_new_message_without_users_is_rejected():
    result = parse_event(frame(NEW_MESSAGE, {"sender": {"_id": "u1"}, "chat": {"_id": "c1"}}))

    assert not result.ok
    assert result.name == NEW_MESSAGE
    assert "malformed" in result.error


def test_new_message_with_non_list_users_is_rejected():
    result = parse_event(frame(NEW_MESSAGE, {"sender": {"_id": "u1"}, "chat": {"users": "u2"}}))

    assert not result.ok


def test_messages_read_requires_both_ids():
    assert parse_event(frame(MESSAGES_READ, {"chatId": "c1", "userId": "u2"})).ok
    assert not parse_event(frame(MESSAGES_READ, {"chatId": "c1"})).ok


def test_empty_room_id_is_rejected():
    assert not parse_event(frame("typing", "")).ok


def test_room_ids_are_kept_verbatim():
    setup = parse_event(frame(SETUP, {"_id": " u1 "}))
    typing = parse_event(frame("typing", " c1 "))

    assert setup.event.data.id == " u1 "
    assert typing.event.data == " c1 "
    assert typing.payload == " c1 "


def test_unknown_event():
    result = parse_event(frame("shout", "c1"))

    assert not result.ok
    assert result.name == "shout"


def test_invalid_json_and_non_object_frames():
    assert parse_event("not json").error.startswith("invalid json")
    assert parse_event("[1, 2]").error == "frame is not an object"
