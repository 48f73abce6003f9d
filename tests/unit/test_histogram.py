"""Tests for the latency histogram wrapper."""

from __future__ import annotations

import pytest

from stampede.metrics.histogram import HdrHistogramWrapper
from stampede.metrics.models import LatencySummary


class TestHdrHistogramWrapper:
    def test_empty_summary(self):
        histogram = HdrHistogramWrapper()
        assert histogram.total_count == 0
        assert histogram.percentile_ms(99.0) == 0.0
        assert histogram.summary() == LatencySummary()

    def test_records_seconds_reads_milliseconds(self):
        histogram = HdrHistogramWrapper()
        for ms in range(1, 101):
            histogram.record_seconds(ms / 1000)

        summary = histogram.summary()
        assert histogram.total_count == 100
        assert summary.min == pytest.approx(1.0, rel=0.01)
        assert summary.max == pytest.approx(100.0, rel=0.01)
        assert summary.avg == pytest.approx(50.5, rel=0.01)
        assert summary.p50 == pytest.approx(50.0, rel=0.02)
        assert summary.p95 == pytest.approx(95.0, rel=0.02)
        assert summary.p99 == pytest.approx(99.0, rel=0.02)

    def test_clamps_out_of_range_values(self):
        histogram = HdrHistogramWrapper()
        assert histogram.record_seconds(0.0)
        assert histogram.record_seconds(10_000.0)
        assert histogram.total_count == 2
        assert histogram.summary().max == pytest.approx(300_000.0, rel=0.01)
