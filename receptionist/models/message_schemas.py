"""
Pydantic models for the payloads the call core exchanges.

This module covers three boundaries:
- backend credential responses (`/api/signed-url`, `/api/realtime-session`),
- the credential artifacts handed to transports,
- tool-call messages carried on the WebRTC data channel and the calendar
  request they are translated into.
"""

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from receptionist.config.constants import (
    CREDENTIAL_REALTIME_SESSION,
    CREDENTIAL_SIGNED_URL,
    DEFAULT_REALTIME_MODEL,
)


# Backend responses
class SignedUrlResponse(BaseModel):
    """Body of GET /api/signed-url."""

    signedUrl: str = Field(..., description="Pre-authorized provider websocket URL")

    @field_validator("signedUrl")
    def validate_signed_url(cls, v):
        """Validate that the signed URL is not empty."""
        if not v.strip():
            raise ValueError("Signed URL cannot be empty")
        return v


class RealtimeSessionResponse(BaseModel):
    """Body of POST /api/realtime-session."""

    model_config = ConfigDict(extra="ignore")

    token: str = Field(..., description="Ephemeral client secret")
    sessionId: Optional[str] = Field(None, description="Provider session id")
    model: Optional[str] = Field(None, description="Realtime model name")
    instructions: Optional[str] = None
    voice: Optional[str] = None

    @field_validator("token")
    def validate_token(cls, v):
        """Validate that the ephemeral token is not empty."""
        if not v.strip():
            raise ValueError("Token cannot be empty")
        return v


class ErrorResponse(BaseModel):
    """Error body returned by the backend."""

    error: str
    details: Optional[Any] = None


# Credential artifacts
class SignedUrlCredential(BaseModel):
    """Credential for the managed transport."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["signed_url"] = CREDENTIAL_SIGNED_URL
    signed_url: str


class RealtimeCredential(BaseModel):
    """Credential for the peer transport."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["realtime_session"] = CREDENTIAL_REALTIME_SESSION
    token: str
    session_id: Optional[str] = None
    model: str = DEFAULT_REALTIME_MODEL


CredentialArtifact = Union[SignedUrlCredential, RealtimeCredential]


# Data channel messages
class ToolMessage(BaseModel):
    """A function call emitted by the model on the tool data channel."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["tool"]
    name: str
    id: Union[str, int]
    args: dict = Field(default_factory=dict)


class CalendarEventArgs(BaseModel):
    """Arguments of the google_calendar_create_event tool."""

    summary: str
    start: str = Field(..., description="Appointment start, ISO 8601")
    end: str = Field(..., description="Appointment end, ISO 8601")


class CalendarEventRequest(BaseModel):
    """Body of POST /api/calendar/events."""

    summary: str
    startTime: str
    endTime: str
    attendees: Optional[List[str]] = None

    @classmethod
    def from_tool_args(cls, args: CalendarEventArgs) -> "CalendarEventRequest":
        return cls(summary=args.summary, startTime=args.start, endTime=args.end)


class ToolResultMessage(BaseModel):
    """Reply sent back on the data channel for a handled tool call."""

    tool_result_id: Union[str, int]
    result: Any
