"""Core voice bridge components.

This module provides the per-call orchestration:
- SessionController: state machine driving listen → transcribe → respond → speak
- TurnBuffer: inbound audio of the current caller turn
- ConversationState: per-call history
- codec / chunker: μ-law conversion and outbound framing
"""

from timbra.core.chunker import chunk_frames
from timbra.core.codec import mulaw_decode, mulaw_encode, wrap_as_wav
from timbra.core.conversation_state import ConversationState, Speaker, Utterance
from timbra.core.session import (
    SessionBackends,
    SessionConfig,
    SessionController,
    SessionMetrics,
    SessionState,
)
from timbra.core.transcript_filter import TranscriptFilter
from timbra.core.turn_buffer import AudioFrame, Track, TurnBuffer, TurnTrigger

__all__ = [
    # Session
    "SessionController",
    "SessionState",
    "SessionConfig",
    "SessionBackends",
    "SessionMetrics",
    # Turn handling
    "TurnBuffer",
    "TurnTrigger",
    "AudioFrame",
    "Track",
    "TranscriptFilter",
    # Conversation
    "ConversationState",
    "Speaker",
    "Utterance",
    # Audio
    "mulaw_decode",
    "mulaw_encode",
    "wrap_as_wav",
    "chunk_frames",
]
