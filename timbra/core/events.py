"""Events consumed by a session's event loop.

Transport events come from the media-stream connection; stage and
playback events are posted back by the session's own background work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from timbra.core.turn_buffer import Track


@dataclass(frozen=True, slots=True)
class StartEvent:
    """Media stream started."""

    stream_sid: str
    call_sid: str = ""
    tracks: tuple[str, ...] = ("inbound",)
    media_format: dict[str, Any] = field(default_factory=dict)
    custom_parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MediaEvent:
    """One inbound μ-law frame."""

    payload: bytes
    track: Track = Track.INBOUND
    timestamp_ms: int | None = None  # transport clock, diagnostics only


@dataclass(frozen=True, slots=True)
class MarkEvent:
    """Transport acknowledged that audio up to a mark was played."""

    name: str


@dataclass(frozen=True, slots=True)
class StopEvent:
    """Inbound stream ended."""


@dataclass(frozen=True, slots=True)
class CloseEvent:
    """Connection closed; tears the session down."""

    reason: str = ""


TransportEvent = StartEvent | MediaEvent | MarkEvent | StopEvent | CloseEvent


class Stage(str, Enum):
    """External pipeline stage."""

    TRANSCRIBE = "transcribe"
    RESPOND = "respond"
    SYNTHESIZE = "synthesize"


@dataclass(frozen=True, slots=True)
class StageCompleted:
    """Result of one backend call, posted by the stage task."""

    turn_id: int
    stage: Stage
    result: Any = None
    error: BaseException | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class PlaybackFinished:
    """Playback of a reply is over (transport mark or duration estimate)."""

    turn_id: int
    source: str = "timer"


SessionEvent = TransportEvent | StageCompleted | PlaybackFinished
