"""
Request handlers for the credential backend.

- session_handlers: signed URL, realtime session and agent id issuance.
"""

from receptionist.handlers.session_handlers import (
    CredentialIssueError,
    handle_get_agent_id,
    handle_realtime_session,
    handle_signed_url,
)

__all__ = [
    "CredentialIssueError",
    "handle_get_agent_id",
    "handle_realtime_session",
    "handle_signed_url",
]
