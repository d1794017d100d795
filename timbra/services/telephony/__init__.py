"""Telephony services (Twilio Media Streams).

This module provides integration with Twilio for voice telephony:
- TwiML generation for the voice webhook
- Media Streams message parsing
- TwilioMediaSender: outbound media, mark and clear messages
"""

from timbra.services.telephony.exceptions import MalformedMessageError, TransportError
from timbra.services.telephony.protocol import Transport
from timbra.services.telephony.twilio import (
    MEDIA_STREAM_PATH,
    TwilioCallInfo,
    TwilioMediaSender,
    generate_hangup_twiml,
    generate_stream_twiml,
    parse_media_message,
)

__all__ = [
    # Protocol
    "Transport",
    # Twilio
    "TwilioCallInfo",
    "TwilioMediaSender",
    "generate_stream_twiml",
    "generate_hangup_twiml",
    "parse_media_message",
    "MEDIA_STREAM_PATH",
    # Exceptions
    "TransportError",
    "MalformedMessageError",
]
