"""
Unit Tests: Monitoring

In-process metrics, Prometheus export and structured log formatting.
"""

import json
import logging
import sys

import pytest

from monitoring import (
    JSONFormatter,
    MetricsRegistry,
    StructuredLogger,
    clear_request_context,
    configure_from_preset,
    get_request_id,
    set_request_context,
    studio_metrics,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def metrics():
    return MetricsRegistry()


# =============================================================================
# Metrics
# =============================================================================

class TestMetrics:
    """Test counters, gauges and histograms."""

    def test_counter_by_labels(self, metrics):
        loads = metrics.counter("loads_total", "Loads", labels=["runtime"])
        loads.inc(runtime="python")
        loads.inc(2, runtime="python")
        loads.inc(runtime="sqlite")

        assert loads.get(runtime="python") == 3
        assert loads.get(runtime="json") == 0

    def test_counter_rejects_negative(self, metrics):
        with pytest.raises(ValueError):
            metrics.counter("c", "C").inc(-1)

    def test_wrong_labels_rejected(self, metrics):
        loads = metrics.counter("loads_total", "Loads", labels=["runtime"])
        with pytest.raises(ValueError):
            loads.inc(model="x")

    def test_gauge_up_and_down(self, metrics):
        cached = metrics.gauge("cached", "Cached")
        cached.set(3)
        cached.dec()
        cached.inc(0.5)

        assert cached.get() == 2.5

    def test_histogram_buckets_cumulative(self, metrics):
        duration = metrics.histogram("duration", "Duration", buckets=[0.1, 1.0])
        duration.observe(0.05)
        duration.observe(0.5)
        duration.observe(5.0)

        stats = duration.get_stats()
        assert stats["count"] == 3
        assert stats["buckets"] == {0.1: 1, 1.0: 2, float("inf"): 3}

    def test_get_or_create_returns_same_metric(self, metrics):
        assert metrics.counter("c", "C") is metrics.counter("c", "C")

    def test_type_conflict(self, metrics):
        metrics.counter("c", "C")
        with pytest.raises(ValueError):
            metrics.gauge("c", "C")

    def test_export_prometheus(self, metrics):
        metrics.counter("runs_total", "Runs", labels=["status"]).inc(status="ok")
        metrics.histogram("seconds", "Seconds", buckets=[1.0]).observe(0.5)

        text = metrics.export_prometheus()

        assert "# HELP runs_total Runs" in text
        assert "# TYPE runs_total counter" in text
        assert 'runs_total{status="ok"} 1.0' in text
        assert 'seconds_bucket{le="1.0"} 1' in text
        assert 'seconds_bucket{le="+Inf"} 1' in text
        assert "seconds_count 1" in text
        assert text.endswith("\n")

    def test_studio_metrics_names(self):
        standard = studio_metrics()

        assert standard["runtime_loads_total"].name == "studio_runtime_loads_total"
        assert standard["runtimes_cached"].metric_type == "gauge"
        assert standard["execution_duration_seconds"].label_names == ["runtime"]
        assert studio_metrics()["generations_total"] is standard["generations_total"]


# =============================================================================
# Logging
# =============================================================================

def make_record(message="hello", exc_info=None, **extra):
    record = logging.LogRecord("studio.test", logging.INFO, __file__, 10, message, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test JSON log lines."""

    def teardown_method(self):
        clear_request_context()

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "studio.test"
        assert data["message"] == "hello"
        assert "request_id" not in data

    def test_request_context_included(self):
        set_request_context(request_id="req-1", session_id="sess-1", runtime_id="python")

        data = json.loads(JSONFormatter().format(make_record()))

        assert data["request_id"] == "req-1"
        assert data["session_id"] == "sess-1"
        assert data["runtime_id"] == "python"
        assert get_request_id() == "req-1"

    def test_extra_fields(self):
        data = json.loads(JSONFormatter().format(make_record(extra_fields={"elapsed_ms": 1.5})))
        assert data["extra"] == {"elapsed_ms": 1.5}

    def test_exception_details(self):
        try:
            raise KeyError("missing")
        except KeyError:
            record = make_record(exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert data["exception"]["type"] == "KeyError"
        assert data["exception"]["traceback"]


class TestStructuredLogger:
    """Test keyword fields reach the record."""

    def test_kwargs_become_extra_fields(self, caplog):
        logger = StructuredLogger("studio.structured")

        with caplog.at_level(logging.INFO, logger="studio.structured"):
            logger.info("Runtime loaded", runtime_id="python")

        assert caplog.records[-1].extra_fields == {"runtime_id": "python"}


def test_unknown_preset():
    with pytest.raises(ValueError):
        configure_from_preset("verbose")
