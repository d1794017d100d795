"""STT (Speech-to-Text) service protocol."""

from __future__ import annotations

from typing import Protocol


class TranscribeClient(Protocol):
    """Protocol for transcription implementations.

    Implementations are shared by all sessions and must not keep
    per-call state.
    """

    async def transcribe(self, audio: bytes, *, language: str = "de") -> str:
        """Transcribe one complete turn.

        Args:
            audio: WAV container (mono PCM16) holding the caller's turn
            language: Language hint for the recognizer

        Returns:
            Transcript text, possibly empty when nothing was recognized

        Raises:
            TranscriptionError: On any backend failure
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
