"""Deepgram STT service implementation for whole-turn transcription."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from timbra.config import Settings, get_settings
from timbra.logging_config import get_logger
from timbra.services.stt.exceptions import TranscriptionConnectionError, TranscriptionError

if TYPE_CHECKING:
    from deepgram import DeepgramClient

logger: Any = get_logger(__name__)

DEEPGRAM_MODEL = "nova-2"


class DeepgramTranscriber:
    """Deepgram pre-recorded transcription of one caller turn.

    The session hands over a complete WAV blob per turn, so the REST
    endpoint is used instead of a live socket. The SDK call is blocking
    and runs in a worker thread.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.deepgram_model or DEEPGRAM_MODEL
        self._client: DeepgramClient | None = None

    @property
    def client(self) -> DeepgramClient:
        """Lazy initialization of Deepgram client."""
        if self._client is None:
            from deepgram import DeepgramClient

            self._client = DeepgramClient(
                api_key=self._settings.deepgram_api_key.get_secret_value(),
            )
        return self._client

    async def transcribe(self, audio: bytes, *, language: str = "de") -> str:
        """Transcribe a WAV blob.

        Args:
            audio: WAV container bytes
            language: Primary language code

        Returns:
            Transcript of the best alternative, "" when nothing was heard

        Raises:
            TranscriptionError: When the request fails or the response is unusable
        """
        from deepgram import PrerecordedOptions

        options = PrerecordedOptions(
            model=self._model,
            language=language,
            smart_format=True,
            punctuate=True,
        )

        start_time = time.perf_counter()
        try:
            response = await asyncio.to_thread(
                self.client.listen.rest.v("1").transcribe_file,
                {"buffer": audio, "mimetype": "audio/wav"},
                options,
            )
        except Exception as e:
            logger.error(f"Deepgram transcription request failed: {e}")
            raise TranscriptionConnectionError(f"Deepgram request failed: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        transcript = extract_transcript(response)
        logger.debug(f"Deepgram transcribed {len(audio)} bytes in {latency_ms:.0f}ms")
        return transcript

    async def close(self) -> None:
        """Close the Deepgram client."""
        self._client = None

    async def health_check(self) -> bool:
        """Check if a Deepgram client can be created."""
        try:
            _ = self.client
            return True
        except Exception as e:
            logger.error(f"Deepgram health check failed: {e}")
            return False


def extract_transcript(response: Any) -> str:
    """Pull the first channel's best transcript out of a prerecorded response."""
    try:
        results = response.results
        channels = results.channels if results else []
        if not channels:
            return ""
        alternatives = channels[0].alternatives
        if not alternatives:
            return ""
        return (alternatives[0].transcript or "").strip()
    except AttributeError as e:
        raise TranscriptionError(f"Unexpected Deepgram response shape: {e}") from e
