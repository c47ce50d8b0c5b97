"""
Tests for action request validation.
"""
import pytest

from calendar_resolver.agent.errors import IncompleteAction, SchemaValidationError
from calendar_resolver.agent.schemas import SemanticRankingOutput
from calendar_resolver.agent.validator import (
    check_required_fields,
    missing_fields,
    validate_action_request,
    validate_payload,
)


def test_calendar_id_defaults_to_primary():
    request = validate_action_request({
        "action": "create",
        "summary": "Dentist",
        "startDateTime": "2025-05-20T15:00:00",
        "endDateTime": "2025-05-20T16:00:00",
    })

    assert request.calendarId == "primary"
    assert request.summary == "Dentist"


@pytest.mark.parametrize("value", [None, "", "   "])
def test_blank_calendar_id_defaults_to_primary(value):
    request = validate_action_request({"action": "delete", "eventId": "x", "calendarId": value})
    assert request.calendarId == "primary"


def test_explicit_calendar_id_kept():
    request = validate_action_request({"action": "delete", "eventId": "x", "calendarId": "work@example.com"})
    assert request.calendarId == "work@example.com"


def test_timestamp_pattern_accepted():
    request = validate_action_request({"action": "update", "eventId": "e1", "summary": "s",
                                       "startDateTime": "2025-05-20T15:00:00"})
    assert request.startDateTime == "2025-05-20T15:00:00"


@pytest.mark.parametrize("value", [
    "2025-05-20T15:00",
    "2025-05-20 15:00:00",
    "2025-05-20T15:00:00Z",
    "2025-05-20T15:00:00+09:00",
    "2025-05-20T15:00:00\n",
    "20250520T150000",
])
def test_timestamp_pattern_rejected(value):
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_action_request({"action": "create", "summary": "x",
                                 "startDateTime": value,
                                 "endDateTime": "2025-05-20T16:00:00"})

    assert exc_info.value.messages == ["startDateTime: must be formatted as YYYY-MM-DDTHH:MM:SS"]


def test_every_violation_is_reported():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_action_request({
            "action": "move",
            "startDateTime": "tomorrow",
            "endDateTime": "2025-05-20T16:00",
        })

    messages = exc_info.value.messages
    assert len(messages) == 3
    assert any(m.startswith("action:") for m in messages)
    assert any(m.startswith("startDateTime:") for m in messages)
    assert any(m.startswith("endDateTime:") for m in messages)
    user_message = exc_info.value.user_message
    assert user_message.startswith("Invalid data format: ")
    for message in messages:
        assert message in user_message


def test_missing_action_rejected():
    with pytest.raises(SchemaValidationError) as exc_info:
        validate_action_request({"summary": "Lunch"})
    assert exc_info.value.messages[0].startswith("action:")


def test_non_object_rejected():
    with pytest.raises(SchemaValidationError):
        validate_action_request(["create"])


def test_validate_payload_for_other_schemas():
    ranking = validate_payload(SemanticRankingOutput, {"matches": [{"id": "e1", "score": 0.5}]})
    assert ranking.matches[0].id == "e1"

    with pytest.raises(SchemaValidationError):
        validate_payload(SemanticRankingOutput, {"matches": [{"score": 0.5}]})


def test_create_missing_end_is_incomplete():
    request = validate_action_request({
        "action": "create",
        "summary": "Dentist",
        "startDateTime": "2025-05-20T15:00:00",
    })

    with pytest.raises(IncompleteAction) as exc_info:
        check_required_fields(request)

    assert exc_info.value.missing == ["endDateTime"]
    assert exc_info.value.user_message == "Sorry, I could not understand the event details."


def test_update_requires_event_id_and_summary():
    request = validate_action_request({"action": "update", "summary": "   "})
    assert missing_fields(request) == ["eventId", "summary"]


def test_delete_has_no_mandatory_fields_at_validation():
    request = validate_action_request({"action": "delete"})
    check_required_fields(request)
