"""Audio conversion utilities for the telephony leg.

Handles:
- G.711 μ-law ↔ 16-bit linear PCM
- WAV container wrapping for the transcription backend
- RMS energy for voice activity and barge-in detection
"""

from __future__ import annotations

import audioop
import io
import wave

# Audio format constants
MULAW_SAMPLE_WIDTH = 1  # μ-law is 8-bit
PCM16_SAMPLE_WIDTH = 2  # 16-bit PCM
TELEPHONY_SAMPLE_RATE = 8000


def _check_pcm16(pcm_bytes: bytes) -> None:
    if len(pcm_bytes) % PCM16_SAMPLE_WIDTH:
        raise ValueError(f"PCM16 buffer has odd length: {len(pcm_bytes)}")


def mulaw_decode(mulaw_bytes: bytes) -> bytes:
    """Convert μ-law encoded audio to 16-bit signed PCM.

    Each input byte maps to one G.711 expansion value, so the output is
    a pure function of the input.

    Args:
        mulaw_bytes: μ-law encoded audio bytes

    Returns:
        16-bit signed PCM bytes (little-endian), twice the input length
    """
    if not mulaw_bytes:
        return b""
    return audioop.ulaw2lin(mulaw_bytes, PCM16_SAMPLE_WIDTH)


def mulaw_encode(pcm_bytes: bytes) -> bytes:
    """Convert 16-bit signed PCM to μ-law encoding.

    Args:
        pcm_bytes: 16-bit signed PCM bytes (little-endian)

    Returns:
        μ-law encoded audio bytes

    Raises:
        ValueError: If the buffer does not hold whole 16-bit samples
    """
    if not pcm_bytes:
        return b""
    _check_pcm16(pcm_bytes)
    return audioop.lin2ulaw(pcm_bytes, PCM16_SAMPLE_WIDTH)


def wrap_as_wav(pcm_bytes: bytes, sample_rate: int = TELEPHONY_SAMPLE_RATE) -> bytes:
    """Wrap raw mono PCM16 in a RIFF/WAVE container.

    The header declares 1 channel, 16-bit samples and ``sample_rate``;
    the data chunk length is ``2 * sample_count``.
    """
    _check_pcm16(pcm_bytes)

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(PCM16_SAMPLE_WIDTH)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm_bytes)
    return buffer.getvalue()


def mulaw_frames_to_wav(frames: list[bytes], sample_rate: int = TELEPHONY_SAMPLE_RATE) -> bytes:
    """Decode a turn's μ-law frames and wrap them for transcription."""
    return wrap_as_wav(mulaw_decode(b"".join(frames)), sample_rate)


def mulaw_duration_ms(num_bytes: int, sample_rate: int = TELEPHONY_SAMPLE_RATE) -> float:
    """Playback duration of ``num_bytes`` of μ-law audio (one byte per sample)."""
    return num_bytes / sample_rate * 1000


def compute_audio_energy(pcm_bytes: bytes) -> float:
    """Compute RMS energy of PCM16 audio for VAD.

    A trailing odd byte is ignored.

    Returns:
        RMS energy value (0.0 to 32767.0 for 16-bit audio)
    """
    usable = len(pcm_bytes) - len(pcm_bytes) % PCM16_SAMPLE_WIDTH
    if not usable:
        return 0.0
    return float(audioop.rms(pcm_bytes[:usable], PCM16_SAMPLE_WIDTH))


def is_speech(pcm_bytes: bytes, threshold: float = 500.0) -> bool:
    """Simple energy-based voice activity detection.

    Args:
        pcm_bytes: PCM16 audio bytes
        threshold: Energy threshold for speech detection

    Returns:
        True if audio likely contains speech
    """
    return compute_audio_energy(pcm_bytes) > threshold
