"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from booking_assistant.services.metrics import MAX_BATCH_SIZE, MetricsClient


class TestMetricsRecording:
    """Verify that record_success / record_failure buffer the right data."""

    def _make_client(self, *, enabled: bool = False) -> MetricsClient:
        with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}):
            return MetricsClient()

    def test_record_success_appends_two_data_points(self):
        client = self._make_client()
        client.record_success("tool", "check_availability", latency_ms=12.3)
        # Should buffer Count + Latency
        assert len(client._buffer) == 2
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"Calls/Count", "Calls/Latency"}

    def test_record_failure_appends_count_and_error(self):
        client = self._make_client()
        client.record_failure("anthropic", "llm_invoke", error_type="timeout")
        # No latency data point since the default is 0
        assert len(client._buffer) == 2
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"Calls/Count", "Calls/Errors"}

    def test_record_failure_with_latency_appends_three_data_points(self):
        client = self._make_client()
        client.record_failure(
            "tool", "book_appointment",
            error_type="tool_error", latency_ms=5.0,
        )
        assert len(client._buffer) == 3
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"Calls/Count", "Calls/Errors", "Calls/Latency"}

    def test_success_dimensions_include_component_and_status(self):
        client = self._make_client()
        client.record_success("anthropic", "llm_invoke", latency_ms=50.0)
        count_metric = next(m for m in client._buffer if m["MetricName"] == "Calls/Count")
        dim_map = {d["Name"]: d["Value"] for d in count_metric["Dimensions"]}
        assert dim_map["Component"] == "anthropic"
        assert dim_map["Status"] == "success"

    def test_failure_dimensions_include_error_type(self):
        client = self._make_client()
        client.record_failure("tool", "get_services", error_type="unknown_tool")
        error_metric = next(m for m in client._buffer if m["MetricName"] == "Calls/Errors")
        dim_map = {d["Name"]: d["Value"] for d in error_metric["Dimensions"]}
        assert dim_map["ErrorType"] == "unknown_tool"

    def test_disabled_buffer_is_bounded(self):
        client = self._make_client()
        for _ in range(MAX_BATCH_SIZE):
            client.record_success("tool", "get_services", latency_ms=1.0)
        assert len(client._buffer) == MAX_BATCH_SIZE


class TestMetricsFlush:
    """Verify flush behaviour with and without CloudWatch enabled."""

    def test_flush_when_disabled_does_not_call_boto3(self):
        with patch.dict("os.environ", {"METRICS_ENABLED": "false"}):
            client = MetricsClient()
        client.record_success("tool", "get_services", latency_ms=1.0)
        assert client.flush() == 0  # disabled, nothing sent

    def test_flush_clears_buffer(self):
        with patch.dict("os.environ", {"METRICS_ENABLED": "false"}):
            client = MetricsClient()
        client.record_success("tool", "get_services", latency_ms=1.0)
        assert len(client._buffer) == 2
        client.flush()
        assert len(client._buffer) == 0

    def test_flush_when_enabled_calls_put_metric_data(self):
        with (
            patch.dict("os.environ", {"METRICS_ENABLED": "true"}),
            patch.object(MetricsClient, "_start_flush_thread"),
        ):
            client = MetricsClient()

        mock_cw = MagicMock()
        client._cw_client = mock_cw  # inject mock

        client.record_success("anthropic", "llm_invoke", latency_ms=100.0)
        sent = client.flush()

        assert sent == 2
        mock_cw.put_metric_data.assert_called_once()
        call_args = mock_cw.put_metric_data.call_args
        assert call_args[1]["Namespace"] == "BookingAssistant"
        assert len(call_args[1]["MetricData"]) == 2

    def test_flush_empty_buffer_returns_zero(self):
        with (
            patch.dict("os.environ", {"METRICS_ENABLED": "true"}),
            patch.object(MetricsClient, "_start_flush_thread"),
        ):
            client = MetricsClient()
        assert client.flush() == 0
