"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import REGISTRY

from timbra.observability.metrics import (
    ACTIVE_CALLS,
    BARGE_IN_TOTAL,
    FRAMES_DROPPED,
    get_content_type,
    get_metrics,
    record_call_metrics,
    record_stage,
    record_turn,
)


def sample(name: str, **labels: str) -> float:
    """Current value of a sample, 0 when it was never recorded."""
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricsModule:
    """Tests for metrics module functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        """Test get_metrics returns bytes."""
        result = get_metrics()
        assert isinstance(result, bytes)

    def test_get_content_type(self) -> None:
        """Test get_content_type returns valid content type."""
        content_type = get_content_type()
        assert "text/plain" in content_type or "text/openmetrics" in content_type

    def test_record_call_metrics(self) -> None:
        """Test recording a finished call."""
        before = sample("timbra_call_total", outcome="stream_stopped")
        count_before = sample("timbra_call_duration_seconds_count")

        record_call_metrics(outcome="stream_stopped", duration_seconds=42.0)

        assert sample("timbra_call_total", outcome="stream_stopped") == before + 1
        assert sample("timbra_call_duration_seconds_count") == count_before + 1

    def test_record_stage_latency(self) -> None:
        """A successful stage only observes latency."""
        count_before = sample("timbra_stage_latency_seconds_count", stage="transcribe")
        errors_before = sample("timbra_stage_errors_total", stage="transcribe", kind="timeout")

        record_stage("transcribe", 350.0)

        assert sample("timbra_stage_latency_seconds_count", stage="transcribe") == (
            count_before + 1
        )
        assert sample("timbra_stage_errors_total", stage="transcribe", kind="timeout") == (
            errors_before
        )

    def test_record_stage_error(self) -> None:
        """A failed stage also counts the error kind."""
        before = sample("timbra_stage_errors_total", stage="respond", kind="timeout")

        record_stage("respond", 15000.0, error_kind="timeout")

        assert sample("timbra_stage_errors_total", stage="respond", kind="timeout") == before + 1

    def test_record_turn(self) -> None:
        before = sample("timbra_turn_total", outcome="junk")
        record_turn("junk")
        assert sample("timbra_turn_total", outcome="junk") == before + 1

    def test_counters_exposed(self) -> None:
        """Unlabelled and labelled counters appear in the scrape output."""
        BARGE_IN_TOTAL.inc()
        FRAMES_DROPPED.labels(reason="speaking").inc()

        output = get_metrics().decode("utf-8")
        assert "timbra_barge_in_total" in output
        assert 'timbra_inbound_frames_dropped_total{reason="speaking"}' in output


class TestMetricsEndpoint:
    """Tests for /metrics endpoint."""

    def test_metrics_endpoint_returns_200(self, test_client) -> None:
        """Test /metrics endpoint returns 200."""
        response = test_client.get("/metrics")

        assert response.status_code == 200

    def test_metrics_endpoint_content_type(self, test_client) -> None:
        """Test /metrics endpoint returns correct content type."""
        response = test_client.get("/metrics")

        content_type = response.headers["content-type"]
        assert "text/plain" in content_type or "text/openmetrics" in content_type

    def test_metrics_endpoint_contains_metrics(self, test_client) -> None:
        """Test /metrics endpoint contains the bridge metrics."""
        response = test_client.get("/metrics")

        assert "timbra_active_calls" in response.text
        assert "timbra_stage_latency_seconds" in response.text


class TestActiveCallsGauge:
    """Tests for ACTIVE_CALLS gauge."""

    def test_active_calls_increment(self) -> None:
        """Test incrementing active calls gauge."""
        initial = ACTIVE_CALLS._value.get()

        ACTIVE_CALLS.inc()
        assert ACTIVE_CALLS._value.get() == initial + 1

        # Cleanup
        ACTIVE_CALLS.dec()
