"""WebSocket handlers for real-time audio streaming.

- media_stream_endpoint: Twilio Media Streams handler
- CallSessionRegistry: active session tracking and capacity limit
"""

from timbra.api.websocket.media_stream import (
    CallCapacityError,
    CallSessionEntry,
    CallSessionRegistry,
    media_stream_endpoint,
)

__all__ = [
    "media_stream_endpoint",
    "CallSessionRegistry",
    "CallSessionEntry",
    "CallCapacityError",
]
