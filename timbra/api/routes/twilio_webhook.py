"""Twilio voice webhook.

Answers an incoming call with TwiML that connects the call audio to the
media-stream WebSocket, or hangs up politely when no slot is free.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from timbra.api.dependencies import get_registry
from timbra.api.websocket.media_stream import CallSessionRegistry
from timbra.config import Settings, get_settings
from timbra.logging_config import get_logger, mask_phone
from timbra.services.telephony.twilio import (
    TwilioCallInfo,
    generate_hangup_twiml,
    generate_stream_twiml,
)

router = APIRouter(prefix="/webhooks", tags=["Twilio"])
logger: Any = get_logger(__name__)

CAPACITY_MESSAGE = (
    "Leider sind gerade alle Leitungen belegt. Bitte versuchen Sie es später noch einmal."
)


@router.post("/voice")
async def twilio_voice_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    registry: CallSessionRegistry = Depends(get_registry),
) -> Response:
    """Handle an incoming call from Twilio.

    Expected form data:
    - CallSid: Unique call identifier
    - From: Caller phone number
    - To: Called phone number
    - Direction: inbound/outbound
    - CallStatus: current call status
    """
    form_data = await request.form()
    call_info = TwilioCallInfo.from_webhook({k: str(v) for k, v in form_data.items()})

    logger.info(
        f"Incoming call {call_info.call_sid} from {mask_phone(call_info.from_number)} "
        f"({call_info.direction}, {call_info.status})"
    )

    if not registry.has_capacity:
        logger.warning(f"Rejecting call {call_info.call_sid}: bridge at capacity")
        return Response(
            content=generate_hangup_twiml(CAPACITY_MESSAGE),
            media_type="application/xml",
        )

    host = settings.public_base_url or request.headers.get("host") or request.url.netloc
    twiml = generate_stream_twiml(host, parameters={"callSid": call_info.call_sid})
    return Response(content=twiml, media_type="application/xml")
