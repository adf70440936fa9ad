"""
Speaker playback for the remote party's audio.

AudioStreamPlayer is the audio output element of a call: it is bound to one
inbound track at a time, pulls frames from it, resamples them to mono s16 and
writes them to a PyAudio output stream. Every played block is also handed to
an optional ActivityAnalyzer so speech activity follows what is heard.
"""

import asyncio
import logging
from typing import Optional

import av
import numpy as np
import pyaudio
from aiortc.mediastreams import MediaStreamError

from receptionist.config.constants import LOGGER_NAME, SAMPLE_RATE
from receptionist.media.activity import ActivityAnalyzer

logger = logging.getLogger(LOGGER_NAME)

FORMAT = pyaudio.paInt16


class AudioStreamPlayer:
    """Plays an aiortc audio track (or raw PCM chunks) through the speakers."""

    def __init__(
        self,
        track=None,
        sample_rate: int = SAMPLE_RATE,
        buffer_size: int = 1024,
        analyzer: Optional[ActivityAnalyzer] = None,
    ):
        self.track = track
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.analyzer = analyzer
        self.p = None
        self.stream = None
        self.playing = False
        self._task: Optional[asyncio.Task] = None
        self._resampler = av.AudioResampler(format="s16", layout="mono", rate=sample_rate)

    def attach(self, track) -> None:
        """Bind the player to a new source track; restarts the pump if playing."""
        self.track = track
        if self.playing:
            self._restart_pump()

    async def start(self) -> None:
        """Open the output device and begin playback of the bound track."""
        if self.playing:
            return
        self.p = pyaudio.PyAudio()
        self.stream = self.p.open(
            format=FORMAT,
            channels=1,
            rate=self.sample_rate,
            output=True,
            frames_per_buffer=self.buffer_size,
        )
        self.stream.start_stream()
        self.playing = True
        logger.info("Audio playback started")
        if self.track is not None:
            self._restart_pump()

    def _restart_pump(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self._receive_frames(self.track))

    async def _receive_frames(self, track) -> None:
        try:
            while self.playing:
                frame = await track.recv()
                for resampled in self._resampler.resample(frame):
                    await self.play_pcm(resampled.to_ndarray().reshape(-1).astype(np.int16))
        except MediaStreamError:
            logger.info("Remote audio track ended")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error receiving remote audio: {e}")

    async def play_pcm(self, samples: np.ndarray) -> None:
        """Write int16 mono samples to the output stream."""
        if self.analyzer is not None:
            self.analyzer.feed(samples)
        if self.stream is None:
            return
        data = samples.tobytes()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.stream.write, data)

    async def stop(self) -> None:
        """Pause playback, detach the track and close the output device."""
        self.playing = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.track = None
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing output stream: {e}")
            self.stream = None
        if self.p is not None:
            self.p.terminate()
            self.p = None
            logger.info("Audio playback stopped")
