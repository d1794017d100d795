"""ElevenLabs TTS service producing telephony-ready μ-law audio."""

from __future__ import annotations

import asyncio
import io
import time
from typing import Any

from timbra.config import Settings, get_settings
from timbra.logging_config import get_logger
from timbra.services.tts.exceptions import (
    SynthesisConfigurationError,
    SynthesisConnectionError,
    SynthesisError,
)
from timbra.services.tts.protocol import VoiceProfile

logger: Any = get_logger(__name__)


class ElevenLabsSynthesizer:
    """ElevenLabs text-to-speech.

    Requests ``ulaw_8000`` output so the audio can be framed and sent to
    the caller without resampling or transcoding.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._client = None

    def _get_client(self):
        if self._client is None:
            if not self._settings.elevenlabs_api_key:
                raise SynthesisConfigurationError("ElevenLabs API key is not configured")
            from elevenlabs import ElevenLabs

            self._client = ElevenLabs(
                api_key=self._settings.elevenlabs_api_key.get_secret_value()
            )
        return self._client

    def default_voice(self) -> VoiceProfile:
        """Voice profile built from settings."""
        return VoiceProfile(
            voice_id=self._settings.elevenlabs_voice_id,
            model_id=self._settings.elevenlabs_model_id,
            output_format=f"ulaw_{self._settings.sample_rate}",
        )

    async def synthesize(self, text: str, voice: VoiceProfile) -> bytes:
        """Synthesize ``text`` to μ-law bytes.

        Raises:
            SynthesisConfigurationError: When no API key is configured
            SynthesisConnectionError: When the request fails
            SynthesisError: When no audio came back
        """
        start_time = time.perf_counter()
        try:
            audio = await asyncio.to_thread(self._synthesize_blocking, text, voice)
        except SynthesisError:
            raise
        except Exception as e:
            logger.error(f"ElevenLabs synthesis error: {e}")
            raise SynthesisConnectionError(f"ElevenLabs connection failed: {e}") from e

        if not audio:
            raise SynthesisError("No audio received from ElevenLabs")

        logger.debug(
            f"ElevenLabs synthesized {len(text)} chars -> {len(audio)} bytes in "
            f"{(time.perf_counter() - start_time) * 1000:.0f}ms"
        )
        return audio

    def _synthesize_blocking(self, text: str, voice: VoiceProfile) -> bytes:
        from elevenlabs import VoiceSettings

        client = self._get_client()
        audio_chunks = client.text_to_speech.convert(
            text=text,
            voice_id=voice.voice_id,
            model_id=voice.model_id,
            output_format=voice.output_format,
            voice_settings=VoiceSettings(
                stability=voice.stability,
                similarity_boost=voice.similarity_boost,
            ),
        )

        buffer = io.BytesIO()
        for chunk in audio_chunks:
            buffer.write(chunk)
        return buffer.getvalue()

    async def close(self) -> None:
        self._client = None

    async def health_check(self) -> bool:
        return bool(self._settings.elevenlabs_api_key)
