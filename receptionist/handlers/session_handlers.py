"""
Issues provider credentials for call sessions.

The browser-side call core never sees a provider API key. These handlers
run on the backend: they exchange the server's ElevenLabs key for a signed
conversation URL, and the server's OpenAI key for an ephemeral realtime
token whose session already carries the salon instructions and the calendar
tool.
"""

import asyncio
import logging
import os
from typing import Any, Dict, Optional

import aiohttp

from receptionist.bot.tool_bridge import CALENDAR_TOOL
from receptionist.config import realtime_model
from receptionist.config.constants import (
    DEFAULT_VOICE,
    ELEVENLABS_SIGNED_URL_ENDPOINT,
    LOGGER_NAME,
    OPENAI_REALTIME_SESSIONS_URL,
    SALON_INSTRUCTIONS,
)
from receptionist.errors import ReceptionistError
from receptionist.models.message_schemas import (
    RealtimeSessionResponse,
    SignedUrlResponse,
)
from receptionist.services.http_session import client_session

logger = logging.getLogger(LOGGER_NAME)

MISSING_ELEVENLABS_CONFIG = (
    "Missing ElevenLabs configuration. Please set ELEVENLABS_AGENT_ID and "
    "ELEVENLABS_API_KEY environment variables."
)


class CredentialIssueError(ReceptionistError):
    """The backend could not issue a credential; reported as HTTP 500."""


def agent_id() -> Optional[str]:
    return os.getenv("ELEVENLABS_AGENT_ID")


async def handle_signed_url(session: Optional[aiohttp.ClientSession] = None) -> SignedUrlResponse:
    """
    Get a signed conversation URL for the configured ElevenLabs agent.

    Raises:
        CredentialIssueError: if configuration is missing or ElevenLabs fails
    """
    agent = agent_id()
    api_key = os.getenv("ELEVENLABS_API_KEY")
    if not agent or not api_key:
        raise CredentialIssueError(MISSING_ELEVENLABS_CONFIG)

    try:
        async with client_session(session) as http:
            async with http.get(
                ELEVENLABS_SIGNED_URL_ENDPOINT,
                params={"agent_id": agent},
                headers={"xi-api-key": api_key},
            ) as response:
                if response.status < 200 or response.status >= 300:
                    raise CredentialIssueError(f"ElevenLabs API error: {response.status} {response.reason}")
                data = await response.json(content_type=None)
        return SignedUrlResponse(signedUrl=data["signed_url"])
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError, TypeError, CredentialIssueError) as e:
        logger.error(f"Error getting signed URL: {e}")
        raise CredentialIssueError("Failed to get signed URL") from e


def realtime_session_request(model: str) -> Dict[str, Any]:
    """Body of the OpenAI realtime session request."""
    return {
        "model": model,
        "instructions": SALON_INSTRUCTIONS,
        "voice": DEFAULT_VOICE,
        "tools": [CALENDAR_TOOL],
    }


async def handle_realtime_session(
    session: Optional[aiohttp.ClientSession] = None,
) -> RealtimeSessionResponse:
    """
    Create an OpenAI realtime session and return its ephemeral token.

    Raises:
        CredentialIssueError: if OpenAI fails or returns no client secret
    """
    model = realtime_model()
    headers = {
        "Authorization": f"Bearer {os.getenv('OPENAI_API_KEY', '')}",
        "OpenAI-Beta": "realtime=v1",
    }

    try:
        async with client_session(session) as http:
            async with http.post(
                OPENAI_REALTIME_SESSIONS_URL,
                json=realtime_session_request(model),
                headers=headers,
            ) as response:
                data = await response.json(content_type=None)
                if response.status < 200 or response.status >= 300:
                    raise CredentialIssueError(f"OpenAI API error: {response.status} {data}")
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, CredentialIssueError) as e:
        logger.error(f"OpenAI API error: {e}")
        raise CredentialIssueError("Realtime session creation failed") from e

    logger.debug(f"OpenAI realtime session response: {data}")
    client_secret = (data.get("client_secret") or {}).get("value") if isinstance(data, dict) else None
    if not client_secret:
        raise CredentialIssueError("No client_secret returned from OpenAI")

    return RealtimeSessionResponse(
        token=client_secret,
        sessionId=data.get("id"),
        model=model,
        instructions=data.get("instructions"),
        voice=data.get("voice"),
    )


def handle_get_agent_id() -> Dict[str, str]:
    """
    Raises:
        CredentialIssueError: if no agent is configured
    """
    agent = agent_id()
    if not agent:
        raise CredentialIssueError("Agent ID not configured")
    return {"agentId": agent}
