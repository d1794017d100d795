"""Text-to-Speech services (ElevenLabs).

Synthesizers return μ-law at the telephony rate so replies can be framed
and sent without transcoding.
"""

from timbra.services.tts.elevenlabs import ElevenLabsSynthesizer
from timbra.services.tts.exceptions import (
    SynthesisConfigurationError,
    SynthesisConnectionError,
    SynthesisError,
)
from timbra.services.tts.protocol import SynthesizeClient, VoiceProfile

__all__ = [
    # Services
    "ElevenLabsSynthesizer",
    # Protocol
    "SynthesizeClient",
    "VoiceProfile",
    # Exceptions
    "SynthesisError",
    "SynthesisConnectionError",
    "SynthesisConfigurationError",
]
