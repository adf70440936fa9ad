"""
Salon Voice Receptionist - call-session core

A caller talks to an AI receptionist for the salon either through a managed
conversational-voice provider (signed websocket URL) or through a realtime
speech model over WebRTC, where the model can book appointments through a
calendar tool carried on a data channel.

Key Components:
- bot: session transports (peer and managed) and the tool-call bridge
- call_state_machine: the call lifecycle and its owned resources
- config: constants, environment settings and logging setup
- errors: the failure taxonomy surfaced to the caller
- handlers: credential issuance for the backend
- main: FastAPI credential backend
- media: microphone capture, speaker playback and speech activity detection
- models: call states and payload schemas
- services: backend credential client

Getting Started:
1. Set up environment variables (or a .env file):
   - OPENAI_API_KEY, ELEVENLABS_AGENT_ID, ELEVENLABS_API_KEY: backend only
   - BACKEND_URL: where the call core reaches the backend (default http://localhost:8000)
   - LOG_LEVEL: Logging level (default INFO)
2. Start the backend: python run.py
3. Place a call: python client.py --provider openai
"""
