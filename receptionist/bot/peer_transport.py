"""
WebRTC transport to the OpenAI Realtime API.

The session is a single aiortc RTCPeerConnection carrying the microphone
track out, the model's voice back in, and a "tool" data channel for function
calls. It is negotiated exactly once: the local offer is POSTed to the
realtime endpoint with the ephemeral token and the SDP answer in the response
body becomes the remote description.
"""

import asyncio
import logging
from typing import Callable, Optional

import aiohttp
from aiortc import (
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)

from receptionist.bot.tool_bridge import ToolCallBridge
from receptionist.bot.transport import (
    MODE_LISTENING,
    MODE_SPEAKING,
    Transport,
    TransportCallbacks,
)
from receptionist.config import realtime_url
from receptionist.config.constants import (
    CREDENTIAL_REALTIME_SESSION,
    FRAME_INTERVAL,
    LOGGER_NAME,
    STUN_SERVER_URL,
    TOOL_CHANNEL_LABEL,
)
from receptionist.errors import NegotiationError
from receptionist.media.activity import ActivityAnalyzer
from receptionist.media.microphone import MicrophoneHandle
from receptionist.media.player import AudioStreamPlayer
from receptionist.models.message_schemas import RealtimeCredential
from receptionist.services.http_session import client_session

logger = logging.getLogger(LOGGER_NAME)

ENDED_CONNECTION_STATES = ("disconnected", "failed", "closed")


class PeerTransport(Transport):
    """
    Peer-to-peer realtime audio session.

    Args:
        endpoint_url: Realtime SDP endpoint; the model is added as a query parameter
        tool_bridge: Bridge installed on the tool data channel
        session: Optional aiohttp session for the SDP exchange
        player_factory: Builds the audio output for the remote track
        analyzer_factory: Builds the speech activity analyzer
        frame_interval: Seconds between activity samples
    """

    credential_kind = CREDENTIAL_REALTIME_SESSION

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        tool_bridge: Optional[ToolCallBridge] = None,
        session: Optional[aiohttp.ClientSession] = None,
        player_factory: Callable[..., AudioStreamPlayer] = AudioStreamPlayer,
        analyzer_factory: Callable[[], ActivityAnalyzer] = ActivityAnalyzer,
        frame_interval: float = FRAME_INTERVAL,
    ):
        super().__init__()
        self.endpoint_url = endpoint_url or realtime_url()
        self.session = session
        self.tool_bridge = tool_bridge or ToolCallBridge(session=session)
        self.player_factory = player_factory
        self.analyzer_factory = analyzer_factory
        self.frame_interval = frame_interval

        self.pc: Optional[RTCPeerConnection] = None
        self.channel = None
        self.player: Optional[AudioStreamPlayer] = None
        self.analyzer: Optional[ActivityAnalyzer] = None
        self.microphone: Optional[MicrophoneHandle] = None
        self._activity_task: Optional[asyncio.Task] = None
        self._speaking: Optional[bool] = None

    @property
    def active(self) -> bool:
        return any(
            resource is not None
            for resource in (self.pc, self.channel, self.player, self.microphone, self._activity_task)
        )

    async def start(
        self,
        credential: RealtimeCredential,
        microphone: MicrophoneHandle,
        callbacks: TransportCallbacks,
    ) -> None:
        await self.end()

        self.callbacks = callbacks
        self.microphone = microphone
        pc = RTCPeerConnection(
            configuration=RTCConfiguration(iceServers=[RTCIceServer(urls=STUN_SERVER_URL)])
        )
        self.pc = pc

        logger.info("Adding microphone tracks to peer connection")
        for track in microphone.get_tracks():
            pc.addTrack(track)

        logger.info("Creating tool data channel")
        self.channel = pc.createDataChannel(TOOL_CHANNEL_LABEL, ordered=True)
        self.tool_bridge.attach(self.channel)

        @pc.on("track")
        async def on_track(track):
            if pc is self.pc:
                await self._on_track(track)

        @pc.on("connectionstatechange")
        async def on_connectionstatechange():
            logger.info(f"Connection state changed to: {pc.connectionState}")
            if pc is self.pc:
                await self._on_connection_state(pc.connectionState)

        @pc.on("negotiationneeded")
        def on_negotiationneeded():
            # Single offer per session; the provider rejects reordered m-lines
            logger.debug("Ignoring renegotiation request")

        await self.negotiate(credential.token, credential.model)

    async def negotiate(self, token: str, model: str) -> None:
        """
        Exchange the local offer for the provider's answer.

        Raises:
            NegotiationError: on a non-success status or an unusable answer
        """
        pc = self.pc
        if pc is None:
            return

        url = f"{self.endpoint_url}?model={model}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/sdp",
        }
        try:
            offer = await pc.createOffer()
            await pc.setLocalDescription(offer)
            logger.info(f"Sending SDP offer to {self.endpoint_url} (model={model})")
            async with client_session(self.session) as session:
                async with session.post(url, data=pc.localDescription.sdp, headers=headers) as response:
                    if response.status < 200 or response.status >= 300:
                        raise NegotiationError(f"HTTP error! Status: {response.status}")
                    answer = await response.text()
        except NegotiationError as e:
            raise NegotiationError(f"Failed to establish connection with OpenAI: {e.message}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NegotiationError(f"Failed to establish connection with OpenAI: {e}") from e

        if not answer.strip():
            raise NegotiationError("Failed to establish connection with OpenAI: empty SDP answer")
        if pc is not self.pc:
            logger.info("Peer connection replaced during negotiation, dropping answer")
            return

        try:
            await pc.setRemoteDescription(RTCSessionDescription(sdp=answer, type="answer"))
        except Exception as e:
            raise NegotiationError(f"Failed to establish connection with OpenAI: invalid SDP answer ({e})") from e
        logger.info("Remote description set")

    async def _on_track(self, track) -> None:
        logger.info(f"Received {track.kind} track from provider")
        if track.kind != "audio":
            return

        if self.player is None:
            self.analyzer = self.analyzer_factory()
            self.player = self.player_factory(track, analyzer=self.analyzer)
        else:
            self.player.attach(track)
        await self.player.start()

        if self._activity_task is None:
            self._activity_task = asyncio.create_task(self._activity_loop())

    async def _activity_loop(self) -> None:
        """Sample speech activity once per frame until the transport ends."""
        while True:
            await asyncio.sleep(self.frame_interval)
            pc = self.pc
            if pc is None or self.analyzer is None or pc.connectionState != "connected":
                continue
            speaking = self.analyzer.is_active()
            if speaking != self._speaking:
                self._speaking = speaking
                await self._fire("on_mode_change", MODE_SPEAKING if speaking else MODE_LISTENING)

    async def _on_connection_state(self, state: str) -> None:
        if state == "connected":
            await self._fire("on_connect")
        elif state in ENDED_CONNECTION_STATES:
            await self._fire("on_disconnect")
            await self.end()

    async def end(self) -> None:
        self.detach()

        if self._activity_task is not None:
            task, self._activity_task = self._activity_task, None
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._speaking = None

        if self.channel is not None:
            channel, self.channel = self.channel, None
            try:
                channel.close()
            except Exception as e:
                logger.error(f"Error closing data channel: {e}")

        if self.pc is not None:
            pc, self.pc = self.pc, None
            try:
                await pc.close()
                logger.info("Peer connection closed")
            except Exception as e:
                logger.error(f"Error closing peer connection: {e}")

        if self.microphone is not None:
            microphone, self.microphone = self.microphone, None
            microphone.stop()

        if self.player is not None:
            player, self.player = self.player, None
            try:
                await player.stop()
            except Exception as e:
                logger.error(f"Error stopping audio player: {e}")
        self.analyzer = None
