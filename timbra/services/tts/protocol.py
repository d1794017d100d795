"""TTS (Text-to-Speech) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class VoiceProfile:
    """Voice selection passed to the synthesizer."""

    voice_id: str
    model_id: str = "eleven_multilingual_v2"
    output_format: str = "ulaw_8000"  # transport-ready μ-law
    stability: float = 0.5
    similarity_boost: float = 0.75


class SynthesizeClient(Protocol):
    """Protocol for synthesis implementations.

    Implementations are shared by all sessions and must not keep
    per-call state.
    """

    async def synthesize(self, text: str, voice: VoiceProfile) -> bytes:
        """Synthesize a reply to μ-law audio at the telephony sample rate.

        Raises:
            SynthesisError: On any backend failure or empty audio
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
