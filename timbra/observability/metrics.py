"""Prometheus metrics for the Timbra voice bridge.

Provides metrics for monitoring turn outcomes, backend latency and
session health.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

CALL_TOTAL = Counter(
    "timbra_call_total",
    "Total calls bridged",
    ["outcome"],
)

TURN_TOTAL = Counter(
    "timbra_turn_total",
    "Caller turns by outcome",
    ["outcome"],
)

STAGE_ERRORS = Counter(
    "timbra_stage_errors_total",
    "Backend stage failures (including timeouts)",
    ["stage", "kind"],
)

BARGE_IN_TOTAL = Counter(
    "timbra_barge_in_total",
    "Playback interruptions triggered by caller speech",
)

FRAMES_DROPPED = Counter(
    "timbra_inbound_frames_dropped_total",
    "Inbound frames not accumulated into any turn",
    ["reason"],
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_CALLS = Gauge(
    "timbra_active_calls",
    "Currently bridged calls",
)

# =============================================================================
# Histograms
# =============================================================================

CALL_DURATION = Histogram(
    "timbra_call_duration_seconds",
    "Call duration in seconds",
    buckets=[10, 30, 60, 120, 300, 600, 900, 1800],
)

STAGE_LATENCY = Histogram(
    "timbra_stage_latency_seconds",
    "Backend stage latency",
    ["stage"],
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0],
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_call_metrics(outcome: str, duration_seconds: float) -> None:
    """Record metrics for a finished call.

    Args:
        outcome: How the session ended (completed, transport_error)
        duration_seconds: Total call duration
    """
    CALL_TOTAL.labels(outcome=outcome).inc()
    CALL_DURATION.observe(duration_seconds)


def record_stage(stage: str, elapsed_ms: float, error_kind: str | None = None) -> None:
    """Record one backend call."""
    STAGE_LATENCY.labels(stage=stage).observe(elapsed_ms / 1000)
    if error_kind:
        STAGE_ERRORS.labels(stage=stage, kind=error_kind).inc()


def record_turn(outcome: str) -> None:
    """Record how a caller turn ended."""
    TURN_TOTAL.labels(outcome=outcome).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_content_type() -> str:
    """Get Prometheus content type."""
    return CONTENT_TYPE_LATEST
