"""
Local audio devices for a call.

- microphone: MicrophoneStreamTrack (PyAudio capture as an aiortc track),
  MicrophoneHandle and the single-handle Microphone acquirer.
- player: AudioStreamPlayer, the speaker output bound to the remote track.
- activity: ActivityAnalyzer, energy-based speech activity on played audio.
"""

from receptionist.media.activity import ActivityAnalyzer
from receptionist.media.microphone import Microphone, MicrophoneHandle, MicrophoneStreamTrack
from receptionist.media.player import AudioStreamPlayer

__all__ = [
    "ActivityAnalyzer",
    "AudioStreamPlayer",
    "Microphone",
    "MicrophoneHandle",
    "MicrophoneStreamTrack",
]
