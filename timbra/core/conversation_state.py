"""Per-call conversation history.

History is append-only for the lifetime of a call and is discarded when
the call ends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from timbra.services.llm.protocol import Message, Role


class Speaker(str, Enum):
    """Who said an utterance."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Utterance:
    """One entry in the call history."""

    speaker: Speaker
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_message(self) -> Message:
        role = Role.USER if self.speaker == Speaker.USER else Role.ASSISTANT
        return Message(role=role, content=self.text, timestamp=self.timestamp)


@dataclass
class ConversationState:
    """Ordered history of one call plus call metadata."""

    call_sid: str | None = None
    stream_sid: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _history: list[Utterance] = field(default_factory=list, init=False, repr=False)

    def append(self, speaker: Speaker, text: str) -> Utterance:
        """Append an utterance to the end of the history."""
        utterance = Utterance(speaker=speaker, text=text)
        self._history.append(utterance)
        return utterance

    @property
    def history(self) -> tuple[Utterance, ...]:
        """Read-only view of the history, oldest first."""
        return tuple(self._history)

    def as_prompt_messages(self, pending_user_text: str | None = None) -> list[Message]:
        """Build responder context, oldest first.

        Args:
            pending_user_text: The caller's new utterance, not yet committed
        """
        messages = [utterance.to_message() for utterance in self._history]
        if pending_user_text is not None:
            messages.append(Message(role=Role.USER, content=pending_user_text))
        return messages

    def transcript(self) -> str:
        """Plain-text transcript for logs."""
        return "\n".join(f"{u.speaker.value}: {u.text}" for u in self._history)

    def __len__(self) -> int:
        return len(self._history)
