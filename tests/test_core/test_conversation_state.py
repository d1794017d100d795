"""Tests for per-call conversation history."""

from __future__ import annotations

from timbra.core.conversation_state import ConversationState, Speaker, Utterance
from timbra.services.llm.protocol import Role


class TestConversationState:
    """Tests for ConversationState."""

    def test_initial_state(self) -> None:
        state = ConversationState(call_sid="CA1", stream_sid="MZ1")
        assert len(state) == 0
        assert state.history == ()
        assert state.call_sid == "CA1"
        assert state.started_at is not None

    def test_append_preserves_order(self) -> None:
        state = ConversationState()
        state.append(Speaker.ASSISTANT, "Guten Tag")
        state.append(Speaker.USER, "Ich brauche einen Termin")

        assert [u.speaker for u in state.history] == [Speaker.ASSISTANT, Speaker.USER]
        assert state.history[1].text == "Ich brauche einen Termin"

    def test_history_is_read_only_view(self) -> None:
        """Mutating the returned tuple is impossible; history only grows."""
        state = ConversationState()
        state.append(Speaker.USER, "Hallo")
        snapshot = state.history
        state.append(Speaker.ASSISTANT, "Hallo, wie kann ich helfen?")

        assert len(snapshot) == 1
        assert len(state.history) == 2

    def test_prompt_messages(self) -> None:
        state = ConversationState()
        state.append(Speaker.USER, "Haben Sie am Montag Zeit?")
        state.append(Speaker.ASSISTANT, "Ja, um zehn Uhr.")

        messages = state.as_prompt_messages(pending_user_text="Passt.")

        assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT, Role.USER]
        assert messages[-1].content == "Passt."
        assert len(state) == 2  # pending text is not committed

    def test_transcript(self) -> None:
        state = ConversationState()
        state.append(Speaker.USER, "Hallo")
        state.append(Speaker.ASSISTANT, "Guten Tag")

        assert state.transcript() == "user: Hallo\nassistant: Guten Tag"


class TestUtterance:
    """Tests for Utterance."""

    def test_to_message(self) -> None:
        utterance = Utterance(speaker=Speaker.ASSISTANT, text="Bis dann")
        message = utterance.to_message()

        assert message.role == Role.ASSISTANT
        assert message.content == "Bis dann"
        assert message.timestamp == utterance.timestamp
