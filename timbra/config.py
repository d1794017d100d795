"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
See .env.example for required variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FILLER_WORDS = [
    "danke",
    "danke schön",
    "dankeschön",
    "vielen dank",
    "bitte",
    "ja",
    "nein",
    "okay",
    "ok",
    "gut",
    "genau",
    "hallo",
    "tschüss",
    "äh",
    "ähm",
    "hm",
    "hmm",
    "mhm",
    "aha",
    "oh",
    "untertitel im auftrag des zdf",
    "untertitel der amara.org-community",
    "vielen dank fürs zuschauen",
]

DEFAULT_SYSTEM_PROMPT = (
    "Du bist die freundliche, empathische Praxisassistenz der Praxis Dr. Emilian Buza. "
    "Sprich natürlich, ruhig und kurz, höchstens zwei Sätze pro Antwort, weil deine "
    "Antworten am Telefon vorgelesen werden. Verwende keine Aufzählungen oder "
    "Sonderzeichen. Wenn der Anrufer einen Termin möchte, frage nach Tag, Uhrzeit und "
    "Namen, und frage bei Unklarheiten freundlich nach. Beende Gespräche höflich."
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    groq_api_key: SecretStr = Field(description="Groq API key for the responder LLM")
    deepgram_api_key: SecretStr = Field(description="Deepgram API key for STT")
    elevenlabs_api_key: SecretStr | None = Field(
        default=None, description="ElevenLabs API key for TTS"
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    public_base_url: str | None = Field(
        default=None,
        description="Public host used in the TwiML stream URL (falls back to request host)",
    )
    max_concurrent_calls: int = Field(
        default=10, ge=1, description="Maximum simultaneously bridged calls"
    )

    # ==========================================================================
    # Endpointing
    # ==========================================================================
    silence_timeout_ms: float = Field(
        default=1000.0,
        gt=0,
        description="Quiet interval after the last inbound frame that ends a turn",
    )
    min_turn_frames: int = Field(
        default=10,
        ge=1,
        description="Turns shorter than this many frames are discarded as noise",
    )
    max_buffer_frames: int = Field(
        default=750,
        ge=1,
        description="Frame count that forces an eager transcription (750 = 15s at 20ms)",
    )
    vad_energy_threshold: float = Field(
        default=250.0,
        ge=0,
        description="RMS energy a frame needs to count as speech (0 counts every frame)",
    )
    endpoint_poll_ms: float = Field(
        default=20.0,
        gt=0,
        description="How often the session loop re-evaluates the silence trigger",
    )

    # ==========================================================================
    # Junk Transcript Filter
    # ==========================================================================
    filler_words: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FILLER_WORDS),
        description="Filler tokens and transcription artifacts that never drive a reply",
    )
    junk_max_chars: int = Field(
        default=24,
        ge=0,
        description="Transcripts made only of filler tokens up to this length are junk",
    )
    junk_min_chars: int = Field(
        default=2,
        ge=0,
        description="Transcripts shorter than this (after normalization) are junk",
    )

    # ==========================================================================
    # Barge-in
    # ==========================================================================
    barge_in_mode: Literal["drop", "interrupt"] = Field(
        default="drop",
        description="drop: ignore caller audio while speaking; interrupt: stop playback",
    )
    barge_in_threshold: float = Field(
        default=500.0,
        description="RMS energy above which inbound audio counts as speech (interrupt mode)",
    )

    # ==========================================================================
    # Playback / Framing
    # ==========================================================================
    sample_rate: int = Field(default=8000, description="Telephony sample rate in Hz")
    frame_size_bytes: int = Field(
        default=160, ge=1, description="Outbound frame size (160 = 20ms of 8kHz μ-law)"
    )
    playback_grace_ms: float = Field(
        default=300.0,
        ge=0,
        description="Added to the estimated playback duration before leaving SPEAKING",
    )
    use_playback_marks: bool = Field(
        default=True,
        description="Send a mark after each reply and treat its echo as playback done",
    )

    # ==========================================================================
    # Backend Timeouts
    # ==========================================================================
    stt_timeout_s: float = Field(default=10.0, gt=0, description="Transcription timeout")
    llm_timeout_s: float = Field(default=15.0, gt=0, description="Responder timeout")
    tts_timeout_s: float = Field(default=10.0, gt=0, description="Synthesis timeout")

    # ==========================================================================
    # Conversation
    # ==========================================================================
    language: str = Field(default="de", description="Language hint for STT")
    greeting_text: str = Field(
        default="Guten Tag, Praxis Dr. Emilian Buza, was kann ich für Sie tun?",
        description="Spoken as soon as the media stream starts",
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT, description="System prompt for the responder"
    )
    groq_model: str = Field(default="llama-3.3-70b-versatile", description="Groq model")
    deepgram_model: str = Field(default="nova-2", description="Deepgram model")
    elevenlabs_voice_id: str = Field(
        default="9BWtsMINqrJLrRacOk9x",
        description="Default ElevenLabs voice ID",
    )
    elevenlabs_model_id: str = Field(
        default="eleven_multilingual_v2",
        description="Default ElevenLabs model ID",
    )

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use dependency injection in FastAPI:
        settings: Settings = Depends(get_settings)
    """
    return Settings()  # type: ignore[call-arg]  # loads from env
