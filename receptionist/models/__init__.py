"""
Data structures for the call-session core.

- call_session: CallState, the transition table, CallSession and CallSnapshot.
- message_schemas: pydantic models for backend payloads, credential artifacts
  and tool-call messages.
"""

from receptionist.models.call_session import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    CallSession,
    CallSnapshot,
    CallState,
)
from receptionist.models.message_schemas import (
    CredentialArtifact,
    RealtimeCredential,
    SignedUrlCredential,
)

__all__ = [
    "ACTIVE_STATES",
    "TERMINAL_STATES",
    "CallSession",
    "CallSnapshot",
    "CallState",
    "CredentialArtifact",
    "RealtimeCredential",
    "SignedUrlCredential",
]
