"""
Websocket client for the ElevenLabs conversational AI agent.

ConvAIConversation opens the signed URL issued by the backend and drives the
agent protocol: it streams microphone audio as `user_audio_chunk` messages,
plays the agent's `audio` events, answers `ping` with `pong`, and reports the
session through four callbacks (connect, disconnect, mode change, error),
the same shape as the vendor's browser SDK.
"""

import asyncio
import base64
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import numpy as np
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from receptionist.bot.transport import MODE_LISTENING, MODE_SPEAKING
from receptionist.config.constants import CONVAI_SAMPLE_RATE, LOGGER_NAME
from receptionist.media.microphone import MicrophoneHandle
from receptionist.media.player import AudioStreamPlayer

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
AUDIO_QUIET_GAP = 0.5  # seconds without agent audio before listening resumes

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024
WS_PING_INTERVAL = 5

Callback = Callable[..., Optional[Awaitable[None]]]


def resample_pcm(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Resample mono int16 PCM with linear interpolation."""
    if from_rate == to_rate or len(samples) == 0:
        return samples.astype(np.int16)
    target_length = int(round(len(samples) * to_rate / from_rate))
    positions = np.linspace(0, len(samples) - 1, num=target_length)
    resampled = np.interp(positions, np.arange(len(samples)), samples.astype(np.float32))
    return resampled.astype(np.int16)


class ConvAIConversation:
    """
    A live conversation with a conversational AI agent.

    Use `start_session()` to connect; the returned object is already running.
    """

    def __init__(
        self,
        signed_url: str,
        microphone: Optional[MicrophoneHandle] = None,
        player: Optional[AudioStreamPlayer] = None,
        on_connect: Optional[Callback] = None,
        on_disconnect: Optional[Callback] = None,
        on_mode_change: Optional[Callback] = None,
        on_error: Optional[Callback] = None,
    ):
        self.signed_url = signed_url
        self.microphone = microphone
        self.player = player
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.on_mode_change = on_mode_change
        self.on_error = on_error

        self.ws = None
        self.conversation_id: Optional[str] = None
        self.input_sample_rate = CONVAI_SAMPLE_RATE
        self.output_sample_rate = CONVAI_SAMPLE_RATE
        self.mode: Optional[str] = None
        self._recv_task: Optional[asyncio.Task] = None
        self._send_task: Optional[asyncio.Task] = None
        self._last_audio = 0.0
        self._is_closing = False
        self._connected = False

    @classmethod
    async def start_session(cls, signed_url: str, **kwargs: Any) -> "ConvAIConversation":
        """Connect to the agent and start the receive loop."""
        conversation = cls(signed_url, **kwargs)
        await conversation.connect()
        return conversation

    async def connect(self) -> None:
        """
        Open the websocket.

        Raises:
            OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException
        """
        logger.info("Connecting to conversational AI agent")
        connection_start = time.time()
        self.ws = await asyncio.wait_for(
            websockets.connect(
                self.signed_url,
                max_size=WS_MAX_SIZE,
                ping_interval=WS_PING_INTERVAL,
                compression=None,
            ),
            timeout=CONNECTION_TIMEOUT,
        )
        logger.debug(f"WebSocket connection established in {time.time() - connection_start:.2f} seconds")
        try:
            if self.player is not None:
                await self.player.start()
        except BaseException:
            ws, self.ws = self.ws, None
            try:
                await ws.close()
            finally:
                if self.player is not None:
                    await self.player.stop()
            raise
        self._recv_task = asyncio.create_task(self._recv_loop())

    async def _emit(self, callback: Optional[Callback], *args) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if result is not None:
                await result
        except Exception as e:
            logger.error(f"Error in conversation callback: {e}", exc_info=True)

    async def _set_mode(self, mode: str) -> None:
        if mode == self.mode:
            return
        self.mode = mode
        logger.debug(f"Mode changed: {mode}")
        await self._emit(self.on_mode_change, mode)

    async def _recv_loop(self) -> None:
        """Dispatch agent events until the socket closes or the session ends."""
        try:
            while not self._is_closing:
                try:
                    message = await asyncio.wait_for(self.ws.recv(), timeout=AUDIO_QUIET_GAP)
                except asyncio.TimeoutError:
                    if self.mode == MODE_SPEAKING and time.time() - self._last_audio >= AUDIO_QUIET_GAP:
                        await self._set_mode(MODE_LISTENING)
                    continue

                try:
                    data = json.loads(message)
                except (TypeError, ValueError):
                    logger.warning(f"Received invalid JSON: {str(message)[:100]}...")
                    continue
                await self.handle_event(data)
        except ConnectionClosedOK:
            logger.info("Conversation closed normally")
        except ConnectionClosed as e:
            logger.warning(f"Conversation connection closed unexpectedly: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in conversation receive loop: {e}")
            if not self._is_closing:
                await self._emit(self.on_error, e)
                return

        if not self._is_closing:
            await self._emit(self.on_disconnect)

    async def handle_event(self, data: Dict[str, Any]) -> None:
        """Handle one decoded agent event."""
        event_type = data.get("type")

        if event_type == "conversation_initiation_metadata":
            metadata = data.get("conversation_initiation_metadata_event", {})
            self.conversation_id = metadata.get("conversation_id")
            self.output_sample_rate = _rate_of(metadata.get("agent_output_audio_format"), self.output_sample_rate)
            self.input_sample_rate = _rate_of(metadata.get("user_input_audio_format"), self.input_sample_rate)
            logger.info(f"Connected to conversation {self.conversation_id}")
            self._connected = True
            if self.microphone is not None and self._send_task is None:
                self._send_task = asyncio.create_task(self._send_loop())
            await self._emit(self.on_connect)
            await self._set_mode(MODE_LISTENING)

        elif event_type == "audio":
            audio = data.get("audio_event", {}).get("audio_base_64")
            if audio:
                self._last_audio = time.time()
                await self._set_mode(MODE_SPEAKING)
                if self.player is not None:
                    samples = np.frombuffer(base64.b64decode(audio), dtype=np.int16)
                    await self.player.play_pcm(resample_pcm(samples, self.output_sample_rate, self.player.sample_rate))

        elif event_type == "interruption":
            await self._set_mode(MODE_LISTENING)

        elif event_type == "ping":
            event_id = data.get("ping_event", {}).get("event_id")
            await self.ws.send(json.dumps({"type": "pong", "event_id": event_id}))

        elif event_type == "user_transcript":
            transcript = data.get("user_transcription_event", {}).get("user_transcript")
            logger.info(f"User: {transcript}")
            await self._set_mode(MODE_LISTENING)

        elif event_type == "agent_response":
            response = data.get("agent_response_event", {}).get("agent_response")
            logger.info(f"Agent: {response}")

        else:
            logger.debug(f"Received message of type: {event_type or 'unknown'}")

    async def _send_loop(self) -> None:
        """Stream microphone audio to the agent."""
        loop = asyncio.get_running_loop()
        track = self.microphone.get_tracks()[0]
        try:
            while not self._is_closing and track.readyState == "live":
                samples = await loop.run_in_executor(None, track.read_pcm)
                chunk = resample_pcm(samples, track.sample_rate, self.input_sample_rate)
                await self.ws.send(
                    json.dumps({"user_audio_chunk": base64.b64encode(chunk.tobytes()).decode("utf-8")})
                )
        except ConnectionClosed:
            logger.debug("Stopped sending audio: connection closed")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error streaming microphone audio: {e}", exc_info=True)

    async def end_session(self) -> None:
        """Close the conversation. Safe to call more than once."""
        if self._is_closing:
            return
        logger.info("Ending conversation")
        self._is_closing = True

        current = asyncio.current_task()
        for task in (self._send_task, self._recv_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._send_task = None
        self._recv_task = None

        try:
            if self.ws is not None:
                await self.ws.close()
        finally:
            self.ws = None
            if self.player is not None:
                await self.player.stop()
        logger.info("Conversation ended")


def _rate_of(audio_format: Optional[str], default: int) -> int:
    """Sample rate from a format name such as "pcm_16000"."""
    if not audio_format or not audio_format.startswith("pcm_"):
        return default
    try:
        return int(audio_format.split("_", 1)[1])
    except ValueError:
        return default
