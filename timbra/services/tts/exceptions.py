"""Custom exceptions for TTS services."""


class SynthesisError(Exception):
    """Base exception for synthesis failures."""

    pass


class SynthesisConnectionError(SynthesisError):
    """Raised when unable to connect to the TTS service."""

    pass


class SynthesisConfigurationError(SynthesisError):
    """Raised when the TTS service is not configured."""

    pass
