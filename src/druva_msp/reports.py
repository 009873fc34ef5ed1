"""Request body builders for Druva MSP reporting endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Union

from druva_msp.config import MAX_REPORT_PAGE_SIZE

FilterValue = Union[str, int, float, bool, list]


class ReportOperator(str, Enum):
    """Comparison operators accepted in report filterBy entries."""
    EQUAL = "EQUAL"
    NOTEQUAL = "NOTEQUAL"
    CONTAINS = "CONTAINS"
    LT = "LT"
    LTE = "LTE"
    GT = "GT"
    GTE = "GTE"


def clamp_page_size(page_size: int) -> int:
    """Report endpoints accept 1 to 100 records per page."""
    return min(max(1, page_size), MAX_REPORT_PAGE_SIZE)


def report_filter(field_name: str, operator: ReportOperator | str, value: FilterValue) -> dict:
    return {
        "fieldName": field_name,
        "operator": ReportOperator(operator).value,
        "value": value,
    }


def format_report_date(value: Union[str, datetime]) -> str:
    """
    Format a date as RFC3339 in UTC, e.g. "2024-01-01T00:00:00Z".

    Naive datetimes and ISO strings without an offset are taken as UTC.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def date_range_filter(
    field_name: str,
    start: Union[str, datetime],
    end: Union[str, datetime],
) -> list[dict]:
    """Build the GTE/LTE pair restricting field_name to [start, end]."""
    return [
        report_filter(field_name, ReportOperator.GTE, format_report_date(start)),
        report_filter(field_name, ReportOperator.LTE, format_report_date(end)),
    ]


def report_filters(page_size: int, filter_by: Optional[Iterable[dict]] = None) -> dict:
    """
    Build the filters object for a report v2 request body.

    Example:
        body = {"filters": report_filters(500, date_range_filter("date", start, end))}
        # pageSize is clamped to 100
    """
    filters: dict = {"pageSize": clamp_page_size(page_size)}
    if filter_by is not None:
        filters["filterBy"] = list(filter_by)
    return filters
