"""Timbra - real-time voice bridge between Twilio calls and STT/LLM/TTS backends."""

__version__ = "0.1.0"
