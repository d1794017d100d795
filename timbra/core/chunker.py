"""Outbound frame chunking."""

from __future__ import annotations

from collections.abc import Iterator

# 20ms of 8kHz μ-law
DEFAULT_FRAME_SIZE_BYTES = 160


def chunk_frames(audio: bytes, frame_size: int = DEFAULT_FRAME_SIZE_BYTES) -> Iterator[bytes]:
    """Split synthesized audio into transport frames, in order.

    Every frame is ``frame_size`` bytes except possibly the last one.
    The returned iterator is lazy and can only be consumed once.

    Raises:
        ValueError: If ``frame_size`` is smaller than 1
    """
    if frame_size < 1:
        raise ValueError(f"frame_size must be >= 1, got {frame_size}")
    return _iter_frames(memoryview(audio), frame_size)


def _iter_frames(view: memoryview, frame_size: int) -> Iterator[bytes]:
    for offset in range(0, len(view), frame_size):
        yield view[offset : offset + frame_size].tobytes()

