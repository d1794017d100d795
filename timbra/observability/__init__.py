"""Observability module for Prometheus metrics."""

from timbra.observability.metrics import (
    ACTIVE_CALLS,
    BARGE_IN_TOTAL,
    CALL_DURATION,
    CALL_TOTAL,
    FRAMES_DROPPED,
    STAGE_ERRORS,
    STAGE_LATENCY,
    TURN_TOTAL,
    record_call_metrics,
    record_stage,
    record_turn,
)

__all__ = [
    "CALL_TOTAL",
    "CALL_DURATION",
    "ACTIVE_CALLS",
    "TURN_TOTAL",
    "STAGE_LATENCY",
    "STAGE_ERRORS",
    "BARGE_IN_TOTAL",
    "FRAMES_DROPPED",
    "record_call_metrics",
    "record_stage",
    "record_turn",
]
