import pytest
from pydantic import ValidationError

from receptionist.config.constants import DEFAULT_REALTIME_MODEL
from receptionist.models.message_schemas import (
    CalendarEventArgs,
    CalendarEventRequest,
    ErrorResponse,
    RealtimeCredential,
    RealtimeSessionResponse,
    SignedUrlCredential,
    SignedUrlResponse,
    ToolMessage,
    ToolResultMessage,
)


def test_signed_url_response_rejects_blank_url():
    with pytest.raises(ValidationError):
        SignedUrlResponse(signedUrl="   ")


def test_realtime_session_response_ignores_extra_fields():
    response = RealtimeSessionResponse.model_validate(
        {"token": "t", "sessionId": "s", "model": "m", "expires_at": 123}
    )
    assert response.token == "t"
    assert not hasattr(response, "expires_at")


def test_realtime_session_response_requires_token():
    with pytest.raises(ValidationError):
        RealtimeSessionResponse.model_validate({"sessionId": "s"})


def test_credentials_are_frozen():
    credential = RealtimeCredential(token="t")
    assert credential.model == DEFAULT_REALTIME_MODEL
    assert credential.kind == "realtime_session"
    with pytest.raises(ValidationError):
        credential.token = "other"

    assert SignedUrlCredential(signed_url="wss://x").kind == "signed_url"


def test_tool_message_accepts_numeric_ids():
    message = ToolMessage.model_validate({"type": "tool", "name": "x", "id": 5, "args": {"a": 1}})
    assert message.id == 5
    assert message.args == {"a": 1}


def test_tool_message_rejects_other_types():
    with pytest.raises(ValidationError):
        ToolMessage.model_validate({"type": "session.update", "name": "x", "id": "1"})


def test_calendar_request_from_tool_args():
    args = CalendarEventArgs(summary="Piega", start="2025-03-14T10:00:00Z", end="2025-03-14T10:30:00Z")

    request = CalendarEventRequest.from_tool_args(args)

    assert request.model_dump(exclude_none=True) == {
        "summary": "Piega",
        "startTime": "2025-03-14T10:00:00Z",
        "endTime": "2025-03-14T10:30:00Z",
    }


def test_tool_result_message_json():
    reply = ToolResultMessage(tool_result_id="42", result={"message": "ok"})
    assert reply.model_dump() == {"tool_result_id": "42", "result": {"message": "ok"}}


def test_error_response():
    assert ErrorResponse(error="boom").model_dump(exclude_none=True) == {"error": "boom"}
