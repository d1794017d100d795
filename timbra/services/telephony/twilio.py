"""Twilio telephony integration for the voice bridge.

Handles:
- TwiML generation for the voice webhook
- Parsing of Media Streams WebSocket messages
- Sending audio, marks and clears back over the stream
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from xml.etree.ElementTree import Element, SubElement, tostring

from timbra.core.events import (
    MarkEvent,
    MediaEvent,
    StartEvent,
    StopEvent,
    TransportEvent,
)
from timbra.core.turn_buffer import Track
from timbra.logging_config import get_logger
from timbra.services.telephony.exceptions import MalformedMessageError, TransportError

if TYPE_CHECKING:
    from fastapi import WebSocket

logger: Any = get_logger(__name__)

MEDIA_STREAM_PATH = "/media-stream"
SAY_VOICE = "Polly.Vicki"
SAY_LANGUAGE = "de-DE"


@dataclass(frozen=True, slots=True)
class TwilioCallInfo:
    """Information about a Twilio call from the voice webhook."""

    call_sid: str
    from_number: str
    to_number: str
    direction: str = "inbound"
    status: str = "ringing"

    @classmethod
    def from_webhook(cls, form_data: dict[str, str]) -> TwilioCallInfo:
        """Create from Twilio webhook form data."""
        return cls(
            call_sid=form_data.get("CallSid", ""),
            from_number=form_data.get("From", ""),
            to_number=form_data.get("To", ""),
            direction=form_data.get("Direction", "inbound"),
            status=form_data.get("CallStatus", "ringing"),
        )


# =============================================================================
# TwiML
# =============================================================================


def _render(response: Element) -> str:
    xml_str = tostring(response, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>{xml_str}'


def generate_stream_twiml(
    host: str,
    *,
    path: str = MEDIA_STREAM_PATH,
    parameters: dict[str, str] | None = None,
) -> str:
    """Generate TwiML that connects the call to our media-stream WebSocket.

    Args:
        host: Public host name, with or without an http(s) scheme
        path: WebSocket path on that host
        parameters: Custom parameters echoed back in the ``start`` message
    """
    bare_host = host.removeprefix("https://").removeprefix("http://").rstrip("/")

    response = Element("Response")
    connect = SubElement(response, "Connect")
    stream = SubElement(connect, "Stream")
    stream.set("url", f"wss://{bare_host}{path}")
    for name, value in (parameters or {}).items():
        param = SubElement(stream, "Parameter")
        param.set("name", name)
        param.set("value", value)

    return _render(response)


def generate_hangup_twiml(reason: str = "") -> str:
    """Generate TwiML that optionally says ``reason`` and hangs up."""
    response = Element("Response")

    if reason:
        say = SubElement(response, "Say")
        say.set("voice", SAY_VOICE)
        say.set("language", SAY_LANGUAGE)
        say.text = reason

    SubElement(response, "Hangup")
    return _render(response)


# =============================================================================
# Media Streams Protocol
# =============================================================================


def parse_media_message(message: dict[str, Any]) -> TransportEvent | None:
    """Translate one Media Streams message into a transport event.

    Returns None for messages the bridge does not act on (``connected``,
    ``dtmf`` and unknown events).

    Raises:
        MalformedMessageError: If a known event is missing required fields
    """
    event = message.get("event", "")

    if event == "start":
        start = message.get("start") or {}
        stream_sid = start.get("streamSid") or message.get("streamSid")
        if not stream_sid:
            raise MalformedMessageError("start event without streamSid")
        return StartEvent(
            stream_sid=stream_sid,
            call_sid=start.get("callSid", ""),
            tracks=tuple(start.get("tracks") or ("inbound",)),
            media_format=dict(start.get("mediaFormat") or {}),
            custom_parameters=dict(start.get("customParameters") or {}),
        )

    if event == "media":
        media = message.get("media") or {}
        payload = media.get("payload")
        if not payload:
            raise MalformedMessageError("media event without payload")
        try:
            audio = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedMessageError(f"invalid base64 payload: {e}") from e

        track = Track.OUTBOUND if media.get("track") == "outbound" else Track.INBOUND
        timestamp = media.get("timestamp")
        try:
            timestamp_ms = int(timestamp) if timestamp not in (None, "") else None
        except (TypeError, ValueError) as e:
            raise MalformedMessageError(f"invalid media timestamp: {timestamp!r}") from e
        return MediaEvent(payload=audio, track=track, timestamp_ms=timestamp_ms)

    if event == "mark":
        name = (message.get("mark") or {}).get("name")
        if not name:
            raise MalformedMessageError("mark event without name")
        return MarkEvent(name=name)

    if event == "stop":
        return StopEvent()

    if event not in ("connected", "dtmf"):
        logger.debug(f"Ignoring unknown media-stream event: {event!r}")
    return None


class TwilioMediaSender:
    """Sends audio to Twilio over the Media Streams WebSocket.

    Implements the Transport protocol for SessionController.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._sent_frames = 0

    @property
    def sent_frames(self) -> int:
        return self._sent_frames

    async def send_media(self, stream_id: str, payload: bytes) -> None:
        """Send one μ-law frame to the caller."""
        await self._send(
            {
                "event": "media",
                "streamSid": stream_id,
                "media": {"payload": base64.b64encode(payload).decode("ascii")},
            }
        )
        self._sent_frames += 1

    async def send_mark(self, stream_id: str, name: str) -> None:
        """Queue a mark; Twilio echoes it once the audio before it played."""
        await self._send({"event": "mark", "streamSid": stream_id, "mark": {"name": name}})

    async def send_clear(self, stream_id: str) -> None:
        """Clear buffered audio (for barge-in)."""
        await self._send({"event": "clear", "streamSid": stream_id})

    async def _send(self, message: dict[str, Any]) -> None:
        try:
            await self._websocket.send_text(json.dumps(message))
        except Exception as e:
            raise TransportError(f"Failed to send {message['event']}: {e}") from e
