"""Tests for the Twilio Media Streams integration."""

from __future__ import annotations

import base64
import json
from xml.etree.ElementTree import fromstring

import pytest

from timbra.core.events import MarkEvent, MediaEvent, StartEvent, StopEvent
from timbra.core.turn_buffer import Track
from timbra.services.telephony.exceptions import MalformedMessageError, TransportError
from timbra.services.telephony.twilio import (
    TwilioCallInfo,
    TwilioMediaSender,
    generate_hangup_twiml,
    generate_stream_twiml,
    parse_media_message,
)


class FakeWebSocket:
    """Captures text frames sent by TwilioMediaSender."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("Cannot call send once a close message has been sent")
        self.sent.append(json.loads(data))


class TestTwilioCallInfo:
    """Tests for webhook form parsing."""

    def test_from_webhook(self) -> None:
        info = TwilioCallInfo.from_webhook(
            {
                "CallSid": "CA123",
                "From": "+4917612345678",
                "To": "+4930123456",
                "Direction": "inbound",
                "CallStatus": "ringing",
            }
        )
        assert info.call_sid == "CA123"
        assert info.from_number == "+4917612345678"
        assert info.direction == "inbound"

    def test_defaults(self) -> None:
        info = TwilioCallInfo.from_webhook({})
        assert info.call_sid == ""
        assert info.status == "ringing"


class TestTwiml:
    """Tests for TwiML generation."""

    def test_stream_twiml(self) -> None:
        root = fromstring(generate_stream_twiml("https://bridge.example.com/"))
        stream = root.find("./Connect/Stream")

        assert root.tag == "Response"
        assert stream is not None
        assert stream.get("url") == "wss://bridge.example.com/media-stream"

    def test_stream_twiml_parameters(self) -> None:
        xml = generate_stream_twiml("bridge.example.com", parameters={"callSid": "CA1"})
        param = fromstring(xml).find("./Connect/Stream/Parameter")

        assert param is not None
        assert param.get("name") == "callSid"
        assert param.get("value") == "CA1"

    def test_hangup_twiml_with_reason(self) -> None:
        root = fromstring(generate_hangup_twiml("Alle Leitungen sind belegt."))

        assert root.find("Say").text == "Alle Leitungen sind belegt."
        assert root.find("Say").get("language") == "de-DE"
        assert root.find("Hangup") is not None

    def test_hangup_twiml_without_reason(self) -> None:
        root = fromstring(generate_hangup_twiml())
        assert root.find("Say") is None
        assert root.find("Hangup") is not None


class TestParseMediaMessage:
    """Tests for inbound message parsing."""

    def test_start(self) -> None:
        event = parse_media_message(
            {
                "event": "start",
                "sequenceNumber": "1",
                "start": {
                    "streamSid": "MZ1",
                    "callSid": "CA1",
                    "tracks": ["inbound"],
                    "mediaFormat": {"encoding": "audio/x-mulaw", "sampleRate": 8000},
                    "customParameters": {"callSid": "CA1"},
                },
                "streamSid": "MZ1",
            }
        )
        assert isinstance(event, StartEvent)
        assert event.stream_sid == "MZ1"
        assert event.call_sid == "CA1"
        assert event.tracks == ("inbound",)
        assert event.media_format["sampleRate"] == 8000
        assert event.custom_parameters == {"callSid": "CA1"}

    def test_media(self) -> None:
        payload = b"\xff" * 160
        event = parse_media_message(
            {
                "event": "media",
                "media": {
                    "track": "inbound",
                    "chunk": "2",
                    "timestamp": "40",
                    "payload": base64.b64encode(payload).decode("ascii"),
                },
                "streamSid": "MZ1",
            }
        )
        assert isinstance(event, MediaEvent)
        assert event.payload == payload
        assert event.track == Track.INBOUND
        assert event.timestamp_ms == 40

    def test_outbound_track(self) -> None:
        event = parse_media_message(
            {"event": "media", "media": {"track": "outbound", "payload": "AAAA"}}
        )
        assert event.track == Track.OUTBOUND

    def test_mark(self) -> None:
        event = parse_media_message({"event": "mark", "mark": {"name": "turn-3"}})
        assert event == MarkEvent(name="turn-3")

    def test_stop(self) -> None:
        assert isinstance(parse_media_message({"event": "stop", "stop": {}}), StopEvent)

    @pytest.mark.parametrize("event", ["connected", "dtmf", "something-new"])
    def test_ignored_events(self, event: str) -> None:
        assert parse_media_message({"event": event}) is None

    @pytest.mark.parametrize(
        "message",
        [
            {"event": "start", "start": {}},
            {"event": "media", "media": {}},
            {"event": "media", "media": {"payload": "not base64!"}},
            {"event": "media", "media": {"payload": "AA==", "timestamp": "abc"}},
            {"event": "mark", "mark": {}},
        ],
    )
    def test_malformed(self, message: dict) -> None:
        with pytest.raises(MalformedMessageError):
            parse_media_message(message)


class TestTwilioMediaSender:
    """Tests for outbound messages."""

    @pytest.mark.asyncio
    async def test_send_media(self) -> None:
        websocket = FakeWebSocket()
        sender = TwilioMediaSender(websocket)

        await sender.send_media("MZ1", b"\x01\x02")

        assert websocket.sent == [
            {"event": "media", "streamSid": "MZ1", "media": {"payload": "AQI="}}
        ]
        assert sender.sent_frames == 1

    @pytest.mark.asyncio
    async def test_send_mark_and_clear(self) -> None:
        websocket = FakeWebSocket()
        sender = TwilioMediaSender(websocket)

        await sender.send_mark("MZ1", "turn-1")
        await sender.send_clear("MZ1")

        assert websocket.sent == [
            {"event": "mark", "streamSid": "MZ1", "mark": {"name": "turn-1"}},
            {"event": "clear", "streamSid": "MZ1"},
        ]

    @pytest.mark.asyncio
    async def test_send_failure_raises_transport_error(self) -> None:
        sender = TwilioMediaSender(FakeWebSocket(fail=True))

        with pytest.raises(TransportError):
            await sender.send_media("MZ1", b"\x00")
        assert sender.sent_frames == 0
