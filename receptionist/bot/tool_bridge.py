"""
Tool-call bridge for the peer transport's data channel.

The realtime model asks the host application to act by sending
`{"type": "tool", "name": ..., "args": ..., "id": ...}` on the "tool" data
channel. Recognized tools are translated into backend calls and answered on
the same channel with `{"tool_result_id": id, "result": body}`. Anything else
is ignored. Failures are logged per message and never touch the call.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from pydantic import ValidationError

from receptionist.config import backend_url
from receptionist.config.constants import (
    CALENDAR_EVENTS_PATH,
    LOGGER_NAME,
    TOOL_CALENDAR_CREATE_EVENT,
)
from receptionist.errors import ToolBridgeError
from receptionist.models.message_schemas import (
    CalendarEventArgs,
    CalendarEventRequest,
    ToolMessage,
    ToolResultMessage,
)
from receptionist.services.http_session import client_session

logger = logging.getLogger(LOGGER_NAME)

# Tool definition offered to the realtime model when the session is created
CALENDAR_TOOL: Dict[str, Any] = {
    "type": "function",
    "name": TOOL_CALENDAR_CREATE_EVENT,
    "description": "Book an appointment in the salon calendar",
    "parameters": {
        "type": "object",
        "required": ["start", "end", "summary"],
        "properties": {
            "start": {
                "type": "string",
                "format": "date-time",
                "description": "Appointment start time in ISO format",
            },
            "end": {
                "type": "string",
                "format": "date-time",
                "description": "Appointment end time in ISO format",
            },
            "summary": {
                "type": "string",
                "description": "Brief description of the appointment",
            },
        },
    },
}

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class ToolCallBridge:
    """
    Routes tool messages from a data channel to backend actions.

    Args:
        base_url: Backend origin hosting the calendar API
        session: Optional aiohttp session to reuse
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[aiohttp.ClientSession] = None):
        self.base_url = (base_url or backend_url()).rstrip("/")
        self.session = session
        self.handlers: Dict[str, ToolHandler] = {
            TOOL_CALENDAR_CREATE_EVENT: self.create_calendar_event,
        }

    def attach(self, channel) -> None:
        """Install the message handler on an RTCDataChannel."""

        @channel.on("message")
        async def on_message(message):
            await self.handle_message(message, channel)

    async def handle_message(self, raw: Any, channel) -> bool:
        """
        Process one inbound data channel message.

        Returns:
            True if a tool result was sent back, False otherwise
        """
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            logger.debug(f"Received message from data channel: {raw}")
            data = json.loads(raw)
        except (UnicodeDecodeError, ValueError) as e:
            logger.error(f"Error processing data channel message: {e}")
            return False

        if not isinstance(data, dict) or data.get("type") != "tool":
            return False
        name = data.get("name")
        handler = self.handlers.get(name) if isinstance(name, str) else None
        if handler is None:
            logger.info(f"Ignoring unrecognized tool: {name}")
            return False

        try:
            message = ToolMessage.model_validate(data)
            logger.info(f"Processing tool call {message.name} ({message.id})")
            result = await handler(message.args)
            reply = ToolResultMessage(tool_result_id=message.id, result=result)
            channel.send(reply.model_dump_json())
            logger.info(f"Sent tool result for {message.id}")
            return True
        except (ValidationError, ToolBridgeError) as e:
            logger.error(f"Error processing data channel message: {e}")
        except Exception as e:
            # A failed tool call must not end the conversation
            logger.error(f"Unexpected error handling tool call: {e}", exc_info=True)
        return False

    async def create_calendar_event(self, args: Dict[str, Any]) -> Any:
        """Book an appointment through POST /api/calendar/events."""
        request = CalendarEventRequest.from_tool_args(CalendarEventArgs.model_validate(args))
        url = f"{self.base_url}{CALENDAR_EVENTS_PATH}"
        try:
            async with client_session(self.session) as session:
                async with session.post(url, json=request.model_dump(exclude_none=True)) as response:
                    body = await response.json(content_type=None)
                    if response.status >= 400:
                        logger.warning(
                            f"Calendar API returned {response.status}: {body}"
                        )
                    return body
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ToolBridgeError(f"Calendar request failed: {e}") from e
