"""
druva-msp - Fetch complete record sets from the Druva MSP management API.

Quick Start
-----------
    from druva_msp import DruvaMspClient

    client = DruvaMspClient()
    customers = client.collect_all("GET", "/msp/v2/customers", "customers")

Configuration
-------------
Set these environment variables (or use a .env file):

    DRUVA_MSP_CLIENT_ID      - Your Druva MSP API client ID
    DRUVA_MSP_CLIENT_SECRET  - Your Druva MSP API secret key
    DRUVA_MSP_BASE_URL       - API root (default: https://apis.druva.com)
    DRUVA_MSP_ENABLE_DEBUG   - Trace reporting requests at DEBUG level

Pagination Dialects
-------------------
    PaginationKind.CURSOR_QUERY   - /msp/v2 listings (customers, tenants, events)
    PaginationKind.CURSOR_BODY    - reporting v1 POST endpoints
    PaginationKind.PAGED_FILTERS  - reporting v2 endpoints ("data" + filters)
    PaginationKind.OFFSET_PAGE    - page / pageSize endpoints

    rows = client.collect_all(
        "POST",
        "/msp/reporting/v1/reports/consumptionItemized",
        body={"filters": report_filters(100, date_range_filter("date", start, end))},
        kind=PaginationKind.PAGED_FILTERS,
    )

Safety Limits
-------------
Aggregation stops early, returning what it gathered, when the server repeats
a page token or after DRUVA_MSP_MAX_REQUESTS requests (default 100).

Exceptions
----------
    AuthenticationError  - Token grant failed
    ApiError             - Request failed (status_code, endpoint attached)
    ResponseShapeError   - Response lacked the expected items key
    TaskTimeoutError     - wait_for_task timed out
"""

__version__ = "0.1.0"

# Enable nested asyncio event loops (sync wrappers inside running loops)
import nest_asyncio
nest_asyncio.apply()

from druva_msp.client import DruvaMspClient
from druva_msp.config import DruvaMspSettings
from druva_msp.pagination import PageRequest, PaginationKind, collect_all, strategy_for
from druva_msp.reports import date_range_filter, report_filter, report_filters
from druva_msp.exceptions import (
    DruvaMspError,
    AuthenticationError,
    ApiError,
    ResponseShapeError,
    TaskTimeoutError,
)

__all__ = [
    "DruvaMspClient",
    "DruvaMspSettings",
    "PageRequest",
    "PaginationKind",
    "collect_all",
    "strategy_for",
    "date_range_filter",
    "report_filter",
    "report_filters",
    "DruvaMspError",
    "AuthenticationError",
    "ApiError",
    "ResponseShapeError",
    "TaskTimeoutError",
    "__version__",
]
