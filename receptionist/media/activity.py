"""
Speech activity detection on the remote audio stream.

ActivityAnalyzer mimics a Web Audio AnalyserNode with fftSize 256: a Blackman
window, magnitude spectrum, exponential smoothing across calls, and decibel
values mapped onto 0..255 bytes. The stream counts as active while the sum of
those byte values exceeds ACTIVITY_THRESHOLD.
"""

import logging
from typing import Optional

import numpy as np

from receptionist.config.constants import (
    ACTIVITY_THRESHOLD,
    ANALYSER_FFT_SIZE,
    ANALYSER_MAX_DECIBELS,
    ANALYSER_MIN_DECIBELS,
    ANALYSER_SMOOTHING,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)


class ActivityAnalyzer:
    def __init__(
        self,
        fft_size: int = ANALYSER_FFT_SIZE,
        threshold: int = ACTIVITY_THRESHOLD,
        smoothing: float = ANALYSER_SMOOTHING,
    ):
        self.fft_size = fft_size
        self.threshold = threshold
        self.smoothing = smoothing
        self._window = np.blackman(fft_size)
        self._buffer = np.zeros(fft_size, dtype=np.float32)
        self._previous: Optional[np.ndarray] = None

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def feed(self, samples: np.ndarray) -> None:
        """
        Push newly played samples into the analysis window.

        Args:
            samples: int16 PCM or float samples in [-1, 1]
        """
        samples = np.asarray(samples).reshape(-1)
        if samples.dtype == np.int16:
            samples = samples.astype(np.float32) / 32768.0
        else:
            samples = samples.astype(np.float32)

        if len(samples) >= self.fft_size:
            self._buffer = samples[-self.fft_size:].copy()
        else:
            self._buffer = np.concatenate([self._buffer[len(samples):], samples])

    def byte_frequency_data(self) -> np.ndarray:
        """Current spectrum as frequency_bin_count unsigned bytes."""
        spectrum = np.fft.rfft(self._buffer * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        if self._previous is not None:
            magnitude = self.smoothing * self._previous + (1 - self.smoothing) * magnitude
        self._previous = magnitude

        with np.errstate(divide="ignore"):
            decibels = 20 * np.log10(magnitude)
        scale = 255.0 / (ANALYSER_MAX_DECIBELS - ANALYSER_MIN_DECIBELS)
        scaled = (decibels - ANALYSER_MIN_DECIBELS) * scale
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def is_active(self) -> bool:
        return int(self.byte_frequency_data().sum(dtype=np.int64)) > self.threshold

    def reset(self) -> None:
        self._buffer = np.zeros(self.fft_size, dtype=np.float32)
        self._previous = None
