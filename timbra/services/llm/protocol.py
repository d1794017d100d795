"""Responder (LLM) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class Role(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A single message in conversation history."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class ResponderClient(Protocol):
    """Protocol for responder implementations.

    Implementations are shared by all sessions and must not keep
    per-call state.
    """

    async def respond(self, messages: list[Message]) -> str:
        """Generate the assistant's next utterance.

        Args:
            messages: Conversation so far, oldest first, ending with the
                caller's new utterance

        Returns:
            Reply text (never empty)

        Raises:
            ResponderError: On any backend failure
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
