"""Custom exceptions for the telephony transport."""


class TransportError(Exception):
    """Raised when the media connection can no longer be used.

    Transport errors are fatal for the session that hit them.
    """

    pass


class MalformedMessageError(ValueError):
    """Raised when an inbound media-stream message cannot be parsed."""

    pass
