"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "salon_receptionist"

# Default OpenAI model and endpoints for the Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview"
OPENAI_REALTIME_URL = "https://api.openai.com/v1/realtime"
OPENAI_REALTIME_SESSIONS_URL = "https://api.openai.com/v1/realtime/sessions"
DEFAULT_VOICE = "alloy"

# ElevenLabs conversational AI
ELEVENLABS_SIGNED_URL_ENDPOINT = (
    "https://api.elevenlabs.io/v1/convai/conversation/get_signed_url"
)

# Backend paths consumed by the call-session core
SIGNED_URL_PATH = "/api/signed-url"
REALTIME_SESSION_PATH = "/api/realtime-session"
CALENDAR_EVENTS_PATH = "/api/calendar/events"
DEFAULT_BACKEND_URL = "http://localhost:8000"

# WebRTC
STUN_SERVER_URL = "stun:stun.l.google.com:19302"
TOOL_CHANNEL_LABEL = "tool"

# Audio parameters
SAMPLE_RATE = 48000
CHANNELS = 1
CHUNK = 960  # 20ms at 48kHz
CONVAI_SAMPLE_RATE = 16000

# Speech activity detection, modelled on a Web Audio AnalyserNode
ANALYSER_FFT_SIZE = 256
ANALYSER_MIN_DECIBELS = -100.0
ANALYSER_MAX_DECIBELS = -30.0
ANALYSER_SMOOTHING = 0.8
ACTIVITY_THRESHOLD = 10
FRAME_INTERVAL = 1 / 60  # one sample per rendered frame

# Call timing
TIMER_INTERVAL = 1.0  # seconds per duration tick
HTTP_TIMEOUT = 30  # seconds

# Credential kinds
CREDENTIAL_SIGNED_URL = "signed_url"
CREDENTIAL_REALTIME_SESSION = "realtime_session"

# Tool names
TOOL_CALENDAR_CREATE_EVENT = "google_calendar_create_event"

# User-facing messages
MICROPHONE_PERMISSION_MESSAGE = (
    "Microphone permission is required for the conversation."
)

# Salon assistant
SALON_NAME = "Belli Capelli"
SALON_INSTRUCTIONS = (
    f'You are a hair salon receptionist for "{SALON_NAME}" hair salon. '
    "Help clients schedule appointments, answer questions about services, "
    "and be friendly and professional. Communicate in Italian primarily."
)
