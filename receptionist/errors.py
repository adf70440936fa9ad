"""
Error taxonomy for the call-session core.

Every failure that can end a call attempt is a ReceptionistError. The call
state machine turns MicrophonePermissionError, CredentialFetchError,
NegotiationError and TransportError into the `error` state with the message
shown to the caller. ToolBridgeError never leaves the tool bridge.
"""


class ReceptionistError(Exception):
    """Base class for call-session failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MicrophonePermissionError(ReceptionistError):
    """The audio input device could not be opened."""


class CredentialFetchError(ReceptionistError):
    """The backend did not return a usable credential."""


class NegotiationError(ReceptionistError):
    """The offer/answer exchange with the provider failed."""


class TransportError(ReceptionistError):
    """The provider reported a runtime error on an established session."""


class ToolBridgeError(ReceptionistError):
    """A tool message was malformed or its backend action failed."""


def describe(error: BaseException) -> str:
    """Human-readable description of an error, never empty."""
    message = getattr(error, "message", None) or str(error)
    return message or "Unknown error"
