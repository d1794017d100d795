"""WebSocket handler for Twilio Media Streams.

Handles the Twilio Media Streams protocol:
- Receives start, media, mark and stop messages from the call
- Feeds them to the call's SessionController
- Sends reply audio, marks and clears back through TwilioMediaSender
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from timbra.config import Settings
from timbra.core.events import CloseEvent, StopEvent
from timbra.core.session import SessionBackends, SessionConfig, SessionController
from timbra.logging_config import get_logger
from timbra.services.telephony.exceptions import MalformedMessageError
from timbra.services.telephony.twilio import TwilioMediaSender, parse_media_message

logger: Any = get_logger(__name__)

# Close code for "try again later" when the bridge is full
WS_CLOSE_TRY_AGAIN_LATER = 1013


class CallCapacityError(Exception):
    """Raised when system is at maximum call capacity."""

    pass


@dataclass
class CallSessionEntry:
    """Entry in the call session registry."""

    session: SessionController
    task: asyncio.Task[None] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class CallSessionRegistry:
    """Registry of active call sessions.

    Enforces the concurrent call limit and closes everything on shutdown.
    """

    def __init__(self, max_concurrent_calls: int = 10) -> None:
        self._sessions: dict[str, CallSessionEntry] = {}
        self._lock = asyncio.Lock()
        self.max_concurrent_calls = max_concurrent_calls

    async def register(self, session: SessionController) -> CallSessionEntry:
        """Track a new session.

        Raises:
            CallCapacityError: If system is at maximum capacity.
        """
        async with self._lock:
            if len(self._sessions) >= self.max_concurrent_calls:
                logger.warning(
                    f"Max concurrent calls reached ({self.max_concurrent_calls}), "
                    f"rejecting session {session.id}"
                )
                raise CallCapacityError(
                    f"System at capacity ({self.max_concurrent_calls} concurrent calls)"
                )

            entry = CallSessionEntry(session=session)
            self._sessions[session.id] = entry
            logger.info(
                f"Registered session {session.id} "
                f"(active: {len(self._sessions)}/{self.max_concurrent_calls})"
            )
            return entry

    async def remove(self, session_id: str) -> CallSessionEntry | None:
        """Remove session from registry.

        Returns the entry for final cleanup.
        """
        async with self._lock:
            return self._sessions.pop(session_id, None)

    async def close_all(self) -> None:
        """Close all sessions (for shutdown)."""
        async with self._lock:
            entries = list(self._sessions.items())
            self._sessions.clear()

        for session_id, entry in entries:
            try:
                if entry.task is not None and not entry.task.done():
                    entry.task.cancel()
                    await asyncio.gather(entry.task, return_exceptions=True)
                await entry.session.close(reason="shutdown")
            except Exception as e:
                logger.error(f"Error closing session {session_id}: {e}")

    @property
    def active_count(self) -> int:
        """Number of active sessions."""
        return len(self._sessions)

    @property
    def has_capacity(self) -> bool:
        return len(self._sessions) < self.max_concurrent_calls


async def media_stream_endpoint(
    websocket: WebSocket,
    *,
    registry: CallSessionRegistry,
    backends: SessionBackends,
    settings: Settings,
) -> None:
    """Bridge one Twilio media stream to a SessionController.

    Protocol:
    - Receives JSON messages with events: connected, start, media, mark, stop
    - Sends JSON messages with events: media, mark, clear
    """
    await websocket.accept()

    session = SessionController(
        TwilioMediaSender(websocket),
        backends,
        SessionConfig.from_settings(settings),
    )

    try:
        entry = await registry.register(session)
    except CallCapacityError:
        await websocket.close(code=WS_CLOSE_TRY_AGAIN_LATER)
        return

    logger.info(f"Media stream connected for session {session.id}")
    entry.task = asyncio.create_task(session.run(), name=f"session-{session.id}")
    close_reason = "transport_closed"

    try:
        while not session.is_closed:
            data = await websocket.receive_text()
            try:
                event = parse_media_message(json.loads(data))
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received for session {session.id}")
                continue
            except MalformedMessageError as e:
                logger.warning(f"Malformed media-stream message for session {session.id}: {e}")
                continue

            if event is None:
                continue

            session.submit(event)

            if isinstance(event, StopEvent):
                close_reason = "stream_stopped"
                break

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for session {session.id}")

    except Exception as e:
        logger.error(f"WebSocket error for session {session.id}: {e}")
        close_reason = "transport_error"

    finally:
        await _cleanup_session(session, entry, registry, close_reason)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except RuntimeError as e:
                logger.debug(f"WebSocket already closed for session {session.id}: {e}")


async def _cleanup_session(
    session: SessionController,
    entry: CallSessionEntry,
    registry: CallSessionRegistry,
    reason: str,
) -> None:
    """Let the session drain its queue, then drop it from the registry."""
    session.submit(CloseEvent(reason=reason))

    if entry.task is not None:
        (result,) = await asyncio.gather(entry.task, return_exceptions=True)
        if isinstance(result, Exception):
            logger.opt(exception=result).error(f"Session {session.id} loop crashed")

    # The loop closes the session itself; this covers a crashed loop
    await session.close(reason=reason)
    await registry.remove(session.id)
    logger.info(f"Cleaned up session {session.id}: {session.get_metrics()}")
