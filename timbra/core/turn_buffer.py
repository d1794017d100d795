"""Inbound audio accumulation for one caller turn."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Track(str, Enum):
    """Media track a frame belongs to."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class TurnTrigger(str, Enum):
    """Why a turn left LISTENING."""

    SILENCE = "silence"
    OVERFLOW = "overflow"


@dataclass(frozen=True, slots=True)
class AudioFrame:
    """One μ-law frame as received from the transport."""

    payload: bytes
    received_at: float  # session clock, seconds
    track: Track = Track.INBOUND
    voiced: bool = True


class TurnBuffer:
    """Frames accumulated since the last drain.

    Unvoiced frames are kept so the turn audio stays contiguous, but only
    voiced frames restart the silence clock and count toward the minimum
    turn length. Owned by a single session task; not safe for concurrent
    writers.
    """

    def __init__(self) -> None:
        self._frames: list[AudioFrame] = []
        self._size_bytes = 0
        self._voiced_count = 0
        self._last_voiced_at: float | None = None
        self._last_frame_at: float | None = None

    def append(self, frame: AudioFrame) -> None:
        """Add a frame to the current turn."""
        self._frames.append(frame)
        self._size_bytes += len(frame.payload)
        self._last_frame_at = frame.received_at
        if frame.voiced:
            self._voiced_count += 1
            self._last_voiced_at = frame.received_at

    def drain(self) -> list[AudioFrame]:
        """Return every frame appended since the previous drain and reset."""
        frames = self._frames
        self._frames = []
        self._size_bytes = 0
        self._voiced_count = 0
        self._last_voiced_at = None
        self._last_frame_at = None
        return frames

    def clear(self) -> int:
        """Discard the current turn, returning how many frames were dropped."""
        return len(self.drain())

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def voiced_count(self) -> int:
        return self._voiced_count

    @property
    def size_bytes(self) -> int:
        return self._size_bytes

    @property
    def last_frame_at(self) -> float | None:
        """Arrival time of the newest frame, None when the buffer is empty."""
        return self._last_frame_at

    @property
    def last_voiced_at(self) -> float | None:
        """Arrival time of the newest voiced frame, None when there is none."""
        return self._last_voiced_at

    @property
    def is_empty(self) -> bool:
        return not self._frames

    def __len__(self) -> int:
        return len(self._frames)

    def check_trigger(
        self,
        now: float,
        *,
        silence_timeout_s: float,
        min_frames: int,
        max_frames: int,
    ) -> TurnTrigger | None:
        """Evaluate the endpointing triggers against the buffered frames.

        Overflow wins as soon as ``max_frames`` are buffered. Silence fires
        once the newest voiced frame is at least ``silence_timeout_s`` old
        and at least ``min_frames`` voiced frames are buffered.
        """
        if not self._frames:
            return None
        if len(self._frames) >= max_frames:
            return TurnTrigger.OVERFLOW
        if not self._silence_elapsed(now, silence_timeout_s):
            return None
        if self._voiced_count >= min_frames:
            return TurnTrigger.SILENCE
        return None

    def is_stale(self, now: float, *, silence_timeout_s: float) -> bool:
        """True when the quiet interval elapsed; pair with ``check_trigger``
        to spot buffers too short to transcribe."""
        return bool(self._frames) and self._silence_elapsed(now, silence_timeout_s)

    def _silence_elapsed(self, now: float, silence_timeout_s: float) -> bool:
        return (
            self._last_voiced_at is not None
            and now - self._last_voiced_at >= silence_timeout_s
        )
