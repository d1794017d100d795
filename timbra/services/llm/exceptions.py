"""Custom exceptions for responder services."""


class ResponderError(Exception):
    """Base exception for responder errors."""

    pass


class ResponderRateLimitError(ResponderError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, retry_after: float = 60.0):
        super().__init__(message)
        self.retry_after = retry_after


class ResponderConnectionError(ResponderError):
    """Raised when unable to connect to the LLM API."""

    pass


class ResponderAuthenticationError(ResponderError):
    """Raised when API key is invalid."""

    pass


class EmptyResponseError(ResponderError):
    """Raised when the model returned no usable text."""

    pass
