"""Tests for RequestResult and Report."""

from __future__ import annotations

import pytest

from stampede.metrics.models import Report, RequestResult


class TestRequestResult:
    def test_success(self):
        result = RequestResult(status_code=200, duration=0.05, ticket=3)
        assert not result.failed
        assert result.error_type is None
        assert result.ticket == 3

    def test_failure(self):
        result = RequestResult(status_code=0, duration=0.01, error="ClientConnectorError: refused")
        assert result.failed
        assert result.error_type == "ClientConnectorError"

    def test_frozen(self):
        result = RequestResult(status_code=200, duration=0.05)
        with pytest.raises(AttributeError):
            result.status_code = 500  # type: ignore[misc]


class TestReport:
    def test_empty_report(self):
        report = Report()
        assert report.success_rate == 0.0
        assert report.requests_per_second == 0.0
        assert report.error_count == 0
        assert report.status_percentages() == {}

    def test_derived_figures(self):
        report = Report(
            total_time=2.0,
            total_requests=200,
            success_requests=150,
            status_codes={500: 30, 200: 150, 0: 20},
        )
        assert report.success_rate == 75.0
        assert report.requests_per_second == 100.0
        assert report.error_count == 20
        assert report.status_percentages() == {0: 10.0, 200: 75.0, 500: 15.0}

    def test_percentages_sorted_errors_first(self):
        report = Report(total_requests=3, status_codes={404: 1, 0: 1, 200: 1})
        assert list(report.status_percentages()) == [0, 200, 404]
