"""
Managed transport: the provider owns the session lifecycle.

The signed URL from the backend is handed to ConvAIConversation, and its
callbacks are mapped one-to-one onto the transport triggers.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from websockets.exceptions import WebSocketException

from receptionist.bot.convai_client import ConvAIConversation
from receptionist.bot.transport import Transport, TransportCallbacks
from receptionist.config.constants import CONVAI_SAMPLE_RATE, CREDENTIAL_SIGNED_URL, LOGGER_NAME
from receptionist.errors import NegotiationError, TransportError, describe
from receptionist.media.microphone import MicrophoneHandle
from receptionist.media.player import AudioStreamPlayer
from receptionist.models.message_schemas import SignedUrlCredential

logger = logging.getLogger(LOGGER_NAME)

ConversationFactory = Callable[..., Awaitable[ConvAIConversation]]


class ManagedTransport(Transport):
    """
    Args:
        conversation_factory: Opens a provider conversation (ConvAIConversation.start_session)
        player_factory: Builds the speaker output for agent audio
    """

    credential_kind = CREDENTIAL_SIGNED_URL

    def __init__(
        self,
        conversation_factory: ConversationFactory = ConvAIConversation.start_session,
        player_factory: Callable[..., AudioStreamPlayer] = AudioStreamPlayer,
    ):
        super().__init__()
        self.conversation_factory = conversation_factory
        self.player_factory = player_factory
        self.conversation: Optional[ConvAIConversation] = None
        self.microphone: Optional[MicrophoneHandle] = None

    @property
    def active(self) -> bool:
        return self.conversation is not None or self.microphone is not None

    async def start(
        self,
        credential: SignedUrlCredential,
        microphone: MicrophoneHandle,
        callbacks: TransportCallbacks,
    ) -> None:
        await self.end()
        self.callbacks = callbacks
        self.microphone = microphone

        player = self.player_factory(sample_rate=CONVAI_SAMPLE_RATE)
        try:
            self.conversation = await self.conversation_factory(
                signed_url=credential.signed_url,
                microphone=microphone,
                player=player,
                on_connect=self._handle_connect,
                on_disconnect=self._handle_disconnect,
                on_mode_change=self._handle_mode_change,
                on_error=self._handle_error,
            )
        except BaseException as e:
            try:
                await player.stop()
            except Exception as stop_error:
                logger.error(f"Error stopping audio player: {stop_error}")
            if isinstance(e, (WebSocketException, OSError, asyncio.TimeoutError)):
                raise NegotiationError(f"Failed to start conversation: {describe(e)}") from e
            raise

    async def _handle_connect(self) -> None:
        logger.info("Connected to managed provider")
        await self._fire("on_connect")

    async def _handle_disconnect(self) -> None:
        logger.info("Disconnected from managed provider")
        await self._fire("on_disconnect")

    async def _handle_mode_change(self, mode: str) -> None:
        await self._fire("on_mode_change", mode)

    async def _handle_error(self, error: BaseException) -> None:
        logger.error(f"Conversation error: {error}")
        await self._fire("on_error", TransportError(f"Conversation error: {describe(error)}"))

    async def end(self) -> None:
        self.detach()
        if self.conversation is not None:
            conversation, self.conversation = self.conversation, None
            try:
                await conversation.end_session()
            except Exception as e:
                # Termination failures never keep the call from ending
                logger.error(f"Failed to end conversation: {describe(e)}")
        if self.microphone is not None:
            microphone, self.microphone = self.microphone, None
            microphone.stop()
