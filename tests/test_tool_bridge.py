import json

import aiohttp
import pytest

from fakes import FakeResponse, FakeSession
from receptionist.bot.tool_bridge import CALENDAR_TOOL, ToolCallBridge

BACKEND = "http://backend.test"

CALENDAR_CALL = {
    "type": "tool",
    "name": "google_calendar_create_event",
    "id": "42",
    "args": {
        "summary": "Taglio e piega",
        "start": "2025-03-14T10:00:00+01:00",
        "end": "2025-03-14T11:00:00+01:00",
    },
}

CREATED = {"message": "Event created", "event": {"id": "evt-1"}}


def test_calendar_tool_definition():
    assert CALENDAR_TOOL["type"] == "function"
    assert CALENDAR_TOOL["name"] == "google_calendar_create_event"
    assert set(CALENDAR_TOOL["parameters"]["required"]) == {"start", "end", "summary"}


@pytest.mark.asyncio
class TestToolCallBridge:

    async def test_calendar_call_posts_and_replies(self, channel):
        session = FakeSession(FakeResponse(201, CREATED))
        bridge = ToolCallBridge(base_url=BACKEND, session=session)

        handled = await bridge.handle_message(json.dumps(CALENDAR_CALL), channel)

        assert handled is True
        assert len(session.calls) == 1
        request = session.calls[0]
        assert request["method"] == "POST"
        assert request["url"] == f"{BACKEND}/api/calendar/events"
        assert request["json"] == {
            "summary": "Taglio e piega",
            "startTime": "2025-03-14T10:00:00+01:00",
            "endTime": "2025-03-14T11:00:00+01:00",
        }
        assert len(channel.sent) == 1
        assert json.loads(channel.sent[0]) == {"tool_result_id": "42", "result": CREATED}

    async def test_attach_installs_message_handler(self, channel):
        session = FakeSession(FakeResponse(201, CREATED))
        bridge = ToolCallBridge(base_url=BACKEND, session=session)

        bridge.attach(channel)
        await channel.handlers["message"](json.dumps(CALENDAR_CALL))

        assert len(channel.sent) == 1

    async def test_bytes_message(self, channel):
        bridge = ToolCallBridge(base_url=BACKEND, session=FakeSession(FakeResponse(201, CREATED)))

        assert await bridge.handle_message(json.dumps(CALENDAR_CALL).encode("utf-8"), channel)

    async def test_numeric_id_is_echoed(self, channel):
        bridge = ToolCallBridge(base_url=BACKEND, session=FakeSession(FakeResponse(201, CREATED)))

        await bridge.handle_message(json.dumps({**CALENDAR_CALL, "id": 7}), channel)

        assert json.loads(channel.sent[0])["tool_result_id"] == 7

    async def test_backend_error_body_is_forwarded(self, channel):
        failure = {"error": "Invalid time range", "details": "end before start"}
        bridge = ToolCallBridge(base_url=BACKEND, session=FakeSession(FakeResponse(400, failure)))

        assert await bridge.handle_message(json.dumps(CALENDAR_CALL), channel)

        assert json.loads(channel.sent[0]) == {"tool_result_id": "42", "result": failure}

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            json.dumps({"type": "response.done"}),
            json.dumps({**CALENDAR_CALL, "name": "send_sms"}),
            json.dumps({**CALENDAR_CALL, "name": ["google_calendar_create_event"]}),
            json.dumps({**CALENDAR_CALL, "name": {"tool": "x"}}),
            json.dumps(["tool"]),
        ],
    )
    async def test_other_messages_are_ignored(self, channel, raw):
        session = FakeSession()
        bridge = ToolCallBridge(base_url=BACKEND, session=session)

        assert await bridge.handle_message(raw, channel) is False

        assert session.calls == []
        assert channel.sent == []

    async def test_malformed_arguments_send_nothing(self, channel):
        session = FakeSession()
        bridge = ToolCallBridge(base_url=BACKEND, session=session)
        call = {**CALENDAR_CALL, "args": {"summary": "Colore"}}

        assert await bridge.handle_message(json.dumps(call), channel) is False

        assert session.calls == []
        assert channel.sent == []

    async def test_missing_id_sends_nothing(self, channel):
        session = FakeSession()
        bridge = ToolCallBridge(base_url=BACKEND, session=session)
        call = {key: value for key, value in CALENDAR_CALL.items() if key != "id"}

        assert await bridge.handle_message(json.dumps(call), channel) is False
        assert channel.sent == []

    async def test_backend_unreachable_sends_nothing(self, channel):
        bridge = ToolCallBridge(
            base_url=BACKEND,
            session=FakeSession(aiohttp.ClientConnectionError("connection refused")),
        )

        assert await bridge.handle_message(json.dumps(CALENDAR_CALL), channel) is False
        assert channel.sent == []

    async def test_unparsable_backend_body_sends_nothing(self, channel):
        bridge = ToolCallBridge(
            base_url=BACKEND,
            session=FakeSession(FakeResponse(500, ValueError("not json"))),
        )

        assert await bridge.handle_message(json.dumps(CALENDAR_CALL), channel) is False
        assert channel.sent == []
