"""
The contract between the call state machine and a session transport.

A transport turns its provider's calling convention into four named
triggers (connect, disconnect, mode change, error) delivered through
TransportCallbacks. The state machine does not know which provider is
behind a transport; it only asks for the credential kind, starts the
transport and ends it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Union

from receptionist.config.constants import LOGGER_NAME
from receptionist.media.microphone import MicrophoneHandle
from receptionist.models.message_schemas import CredentialArtifact

logger = logging.getLogger(LOGGER_NAME)

Trigger = Callable[[], Union[None, Awaitable[None]]]
ModeTrigger = Callable[[str], Union[None, Awaitable[None]]]
ErrorTrigger = Callable[[BaseException], Union[None, Awaitable[None]]]

MODE_SPEAKING = "speaking"
MODE_LISTENING = "listening"


class TransportCallbacks:
    """Named transition triggers a transport fires during a session."""

    def __init__(
        self,
        on_connect: Trigger,
        on_disconnect: Trigger,
        on_mode_change: ModeTrigger,
        on_error: ErrorTrigger,
    ):
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.on_mode_change = on_mode_change
        self.on_error = on_error


class Transport(ABC):
    """A real-time audio session with a voice provider."""

    #: credential kind the state machine must fetch before start()
    credential_kind: str = ""

    def __init__(self):
        self.callbacks: Optional[TransportCallbacks] = None

    @property
    @abstractmethod
    def active(self) -> bool:
        """True while the transport holds any live resource."""

    @abstractmethod
    async def start(
        self,
        credential: CredentialArtifact,
        microphone: MicrophoneHandle,
        callbacks: TransportCallbacks,
    ) -> None:
        """
        Establish the session.

        Raises:
            NegotiationError: if the session could not be established
        """

    @abstractmethod
    async def end(self) -> None:
        """Release every resource of the session. Idempotent."""

    def detach(self) -> None:
        """Stop delivering triggers; later provider events are dropped."""
        self.callbacks = None

    async def _fire(self, name: str, *args) -> None:
        callbacks = self.callbacks
        if callbacks is None:
            logger.debug(f"Dropping {name} trigger from detached transport")
            return
        result = getattr(callbacks, name)(*args)
        if result is not None:
            await result
