"""
Microphone capture and acquisition.

MicrophoneStreamTrack is an aiortc MediaStreamTrack fed by a PyAudio input
stream running in callback mode. Microphone hands out at most one
MicrophoneHandle at a time: acquiring a new handle always stops the previous
one first, and releasing is idempotent.
"""

import asyncio
import fractions
import logging
import queue
from typing import Callable, List, Optional

import av
import numpy as np
import pyaudio
from aiortc import MediaStreamTrack
from aiortc.mediastreams import MediaStreamError

from receptionist.config.constants import (
    CHANNELS,
    CHUNK,
    LOGGER_NAME,
    MICROPHONE_PERMISSION_MESSAGE,
    SAMPLE_RATE,
)
from receptionist.errors import MicrophonePermissionError

logger = logging.getLogger(LOGGER_NAME)

FORMAT = pyaudio.paInt16
READ_TIMEOUT = 0.5  # seconds to wait for a chunk before sending silence


class MicrophoneStreamTrack(MediaStreamTrack):
    """MediaStreamTrack that captures audio from the default input device."""

    kind = "audio"

    def __init__(self, sample_rate: int = SAMPLE_RATE, chunk: int = CHUNK):
        super().__init__()
        self.sample_rate = sample_rate
        self.chunk = chunk
        self.thread_queue: "queue.Queue[bytes]" = queue.Queue(maxsize=50)
        self.timestamp = 0
        self.p = None
        self.stream = None

    async def start(self) -> None:
        """Open the input stream; raises OSError when the device is unavailable."""
        self.p = pyaudio.PyAudio()
        try:
            self.stream = self.p.open(
                format=FORMAT,
                channels=CHANNELS,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk,
                stream_callback=self._on_audio,
            )
        except OSError:
            self.p.terminate()
            self.p = None
            raise
        self.stream.start_stream()
        logger.info(f"Microphone initialized: {self.sample_rate}Hz, {CHANNELS} channel(s)")

    def _on_audio(self, in_data, frame_count, time_info, status):
        # Runs on the PortAudio thread
        try:
            self.thread_queue.put_nowait(in_data)
        except queue.Full:
            logger.debug("Microphone queue full, dropping chunk")
        return (None, pyaudio.paContinue)

    def _read_chunk(self) -> bytes:
        try:
            data = self.thread_queue.get(timeout=READ_TIMEOUT)
        except queue.Empty:
            data = b""
        if not data:
            return bytes(self.chunk * 2)
        return data

    async def recv(self):
        """Get the next frame from the microphone."""
        if self.readyState != "live":
            raise MediaStreamError

        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._read_chunk)
        samples = len(data) // 2

        frame = av.AudioFrame(format="s16", layout="mono", samples=samples)
        frame.planes[0].update(data)
        frame.sample_rate = self.sample_rate
        frame.pts = self.timestamp
        frame.time_base = fractions.Fraction(1, self.sample_rate)
        self.timestamp += samples
        return frame

    def read_pcm(self) -> np.ndarray:
        """Blocking read of one chunk as int16 samples, used by websocket transports."""
        return np.frombuffer(self._read_chunk(), dtype=np.int16)

    def stop(self) -> None:
        """Stop the input stream and end the track."""
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing microphone stream: {e}")
            self.stream = None
        if self.p is not None:
            self.p.terminate()
            self.p = None
            logger.info("Microphone stopped")
        super().stop()


class MicrophoneHandle:
    """A live acquisition of the microphone: one or more capture tracks."""

    def __init__(self, tracks: List[MediaStreamTrack]):
        self._tracks = list(tracks)
        self.released = False

    def get_tracks(self) -> List[MediaStreamTrack]:
        return list(self._tracks)

    def stop(self) -> None:
        """Stop every underlying track. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        for track in self._tracks:
            try:
                track.stop()
            except Exception as e:
                logger.error(f"Error stopping microphone track: {e}")


class Microphone:
    """
    Acquires and releases the user's audio input device.

    At most one MicrophoneHandle is outstanding; `handle` is that handle or None.
    """

    def __init__(self, track_factory: Callable[[], MediaStreamTrack] = MicrophoneStreamTrack):
        self.track_factory = track_factory
        self.handle: Optional[MicrophoneHandle] = None

    async def acquire(self) -> MicrophoneHandle:
        """
        Open the microphone.

        Returns:
            The new MicrophoneHandle

        Raises:
            MicrophonePermissionError: if the input device cannot be opened
        """
        self.release(self.handle)

        track = self.track_factory()
        try:
            await track.start()
        except OSError as e:
            logger.error(f"Microphone permission denied: {e}")
            track.stop()
            raise MicrophonePermissionError(MICROPHONE_PERMISSION_MESSAGE) from e

        self.handle = MicrophoneHandle([track])
        logger.info("Microphone access granted")
        return self.handle

    async def request_permission(self) -> bool:
        """Acquire the microphone, reporting denial as False instead of raising."""
        try:
            await self.acquire()
            return True
        except MicrophonePermissionError:
            return False

    def release(self, handle: Optional[MicrophoneHandle] = None) -> None:
        """Stop the given handle (default: the held one). No-op on None or released handles."""
        if handle is None:
            handle = self.handle
        if handle is None:
            return
        handle.stop()
        if handle is self.handle:
            self.handle = None
