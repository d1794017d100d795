"""Speech-to-Text services (Deepgram)."""

from timbra.services.stt.deepgram import DeepgramTranscriber
from timbra.services.stt.exceptions import TranscriptionConnectionError, TranscriptionError
from timbra.services.stt.protocol import TranscribeClient

__all__ = [
    "DeepgramTranscriber",
    "TranscribeClient",
    "TranscriptionError",
    "TranscriptionConnectionError",
]
