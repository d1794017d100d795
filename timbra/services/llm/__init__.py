"""Responder services (Groq)."""

from timbra.services.llm.exceptions import (
    EmptyResponseError,
    ResponderAuthenticationError,
    ResponderConnectionError,
    ResponderError,
    ResponderRateLimitError,
)
from timbra.services.llm.groq import GroqResponder
from timbra.services.llm.protocol import Message, ResponderClient, Role

__all__ = [
    # Protocol and types
    "ResponderClient",
    "Message",
    "Role",
    # Implementation
    "GroqResponder",
    # Exceptions
    "ResponderError",
    "ResponderRateLimitError",
    "ResponderConnectionError",
    "ResponderAuthenticationError",
    "EmptyResponseError",
]
