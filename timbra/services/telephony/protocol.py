"""Transport protocol for the outbound half of the media connection."""

from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    """Sends audio and control messages back to the caller.

    Every message carries the stream identifier received at ``start``;
    the telephony provider discards anything else.
    """

    async def send_media(self, stream_id: str, payload: bytes) -> None:
        """Send one μ-law frame.

        Raises:
            TransportError: If the connection is no longer usable
        """
        ...

    async def send_mark(self, stream_id: str, name: str) -> None:
        """Queue a named mark behind the audio sent so far."""
        ...

    async def send_clear(self, stream_id: str) -> None:
        """Drop any audio the provider has buffered but not yet played."""
        ...
