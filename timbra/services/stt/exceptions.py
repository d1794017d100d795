"""Custom exceptions for STT services."""


class TranscriptionError(Exception):
    """Raised when a turn could not be transcribed."""

    pass


class TranscriptionConnectionError(TranscriptionError):
    """Raised when unable to reach the STT API."""

    pass
