"""
Session transports and the tool-call bridge.

Key components:
- Transport / TransportCallbacks: the provider-agnostic contract the call state
  machine drives (start, end, and the connect/disconnect/mode/error triggers).
- PeerTransport: aiortc peer connection negotiated against the OpenAI Realtime
  endpoint, with a "tool" data channel and speech activity detection.
- ManagedTransport: a conversational AI agent session opened from a signed URL
  through ConvAIConversation.
- ToolCallBridge: turns tool messages on the data channel into calendar bookings.

Usage examples:
```python
from receptionist.bot import PeerTransport
from receptionist.call_state_machine import CallStateMachine

machine = CallStateMachine(PeerTransport())
await machine.start()
```
"""

from receptionist.bot.convai_client import ConvAIConversation
from receptionist.bot.managed_transport import ManagedTransport
from receptionist.bot.peer_transport import PeerTransport
from receptionist.bot.tool_bridge import CALENDAR_TOOL, ToolCallBridge
from receptionist.bot.transport import Transport, TransportCallbacks

__all__ = [
    "CALENDAR_TOOL",
    "ConvAIConversation",
    "ManagedTransport",
    "PeerTransport",
    "ToolCallBridge",
    "Transport",
    "TransportCallbacks",
]
