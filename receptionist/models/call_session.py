"""
Call session state for the AI receptionist.

This module defines the call states, the transitions allowed between them, and
the CallSession record that owns the live microphone and transport handles of
the one active call. The CallStateMachine mutates a CallSession; nothing else
holds references to its handles.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set


class CallState(str, Enum):
    """States a call attempt moves through."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SPEAKING = "speaking"
    LISTENING = "listening"
    ENDED = "ended"
    ERROR = "error"


ACTIVE_STATES = frozenset({CallState.CONNECTED, CallState.SPEAKING, CallState.LISTENING})
TERMINAL_STATES = frozenset({CallState.ENDED, CallState.ERROR})

# Valid state transitions; reset() may return to IDLE from anywhere
VALID_TRANSITIONS: Dict[CallState, Set[CallState]] = {
    CallState.IDLE: {CallState.CONNECTING, CallState.ERROR},
    CallState.CONNECTING: {CallState.CONNECTED, CallState.ENDED, CallState.ERROR},
    CallState.CONNECTED: {
        CallState.SPEAKING,
        CallState.LISTENING,
        CallState.ENDED,
        CallState.ERROR,
    },
    CallState.SPEAKING: {
        CallState.CONNECTED,
        CallState.LISTENING,
        CallState.ENDED,
        CallState.ERROR,
    },
    CallState.LISTENING: {
        CallState.CONNECTED,
        CallState.SPEAKING,
        CallState.ENDED,
        CallState.ERROR,
    },
    CallState.ENDED: {CallState.CONNECTING},
    CallState.ERROR: {CallState.CONNECTING},
}


def can_transition(from_state: CallState, to_state: CallState) -> bool:
    if to_state == CallState.IDLE:
        return True
    return to_state in VALID_TRANSITIONS[from_state]


@dataclass(frozen=True)
class CallSnapshot:
    """Read-only view of a call handed to presentation listeners."""

    state: CallState
    duration: int
    error: Optional[str]

    @property
    def is_connected(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_speaking(self) -> bool:
        return self.state == CallState.SPEAKING


class CallSession:
    """
    The single owned resource record of a call attempt.

    Attributes:
        state: Current CallState
        duration: Whole seconds since `connected` was last entered
        error: Failure description, only set while state is ERROR
        microphone: Live MicrophoneHandle, or None
        transport: Started Transport, or None
    """

    def __init__(self):
        self.state = CallState.IDLE
        self.duration = 0
        self.error: Optional[str] = None
        self.microphone: Optional[Any] = None
        self.transport: Optional[Any] = None

    @property
    def is_connected(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_speaking(self) -> bool:
        return self.state == CallState.SPEAKING

    @property
    def has_resources(self) -> bool:
        return self.microphone is not None or self.transport is not None

    def snapshot(self) -> CallSnapshot:
        return CallSnapshot(state=self.state, duration=self.duration, error=self.error)
