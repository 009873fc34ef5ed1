"""Tests for druva_msp.reports module."""

from datetime import datetime, timedelta, timezone

import pytest

from druva_msp.reports import (
    ReportOperator,
    clamp_page_size,
    date_range_filter,
    format_report_date,
    report_filter,
    report_filters,
)


class TestReportFilter:
    """Tests for filterBy entries."""

    def test_builds_filter_entry(self):
        assert report_filter("customerGlobalId", ReportOperator.CONTAINS, ["c1"]) == {
            "fieldName": "customerGlobalId",
            "operator": "CONTAINS",
            "value": ["c1"],
        }

    def test_accepts_operator_string(self):
        assert report_filter("status", "EQUAL", 1)["operator"] == "EQUAL"

    def test_rejects_unknown_operator(self):
        with pytest.raises(ValueError):
            report_filter("status", "BETWEEN", 1)


class TestFormatReportDate:
    """Tests for RFC3339 date formatting."""

    @pytest.mark.parametrize(
        "value",
        [
            "2024-01-01T00:00:00Z",
            "2024-01-01T00:00:00",
            "2024-01-01",
            datetime(2024, 1, 1),
            datetime(2024, 1, 1, tzinfo=timezone.utc),
        ],
    )
    def test_formats_utc(self, value):
        assert format_report_date(value) == "2024-01-01T00:00:00Z"

    def test_converts_offsets_to_utc(self):
        value = datetime(2024, 1, 1, 5, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))

        assert format_report_date(value) == "2024-01-01T00:00:00Z"


class TestDateRangeFilter:
    """Tests for date_range_filter."""

    def test_builds_inclusive_range(self):
        filters = date_range_filter("lastUpdatedTime", "2024-01-01", "2024-01-31T23:59:59Z")

        assert filters == [
            {"fieldName": "lastUpdatedTime", "operator": "GTE", "value": "2024-01-01T00:00:00Z"},
            {"fieldName": "lastUpdatedTime", "operator": "LTE", "value": "2024-01-31T23:59:59Z"},
        ]


class TestReportFilters:
    """Tests for the report v2 filters object."""

    @pytest.mark.parametrize("requested, expected", [(0, 1), (25, 25), (100, 100), (500, 100)])
    def test_clamps_page_size(self, requested, expected):
        assert clamp_page_size(requested) == expected
        assert report_filters(requested)["pageSize"] == expected

    def test_includes_filter_by_when_given(self):
        filter_by = date_range_filter("date", "2024-01-01", "2024-01-02")

        filters = report_filters(50, filter_by)

        assert filters == {"pageSize": 50, "filterBy": filter_by}

    def test_omits_filter_by_when_none(self):
        assert report_filters(50) == {"pageSize": 50}
