"""DruvaMspClient - main entry point for druva-msp."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator, Iterable, Optional

import httpx
import pandas as pd

from druva_msp.auth import TokenManager
from druva_msp.config import DruvaMspSettings
from druva_msp.enrichment import enrich_task
from druva_msp.exceptions import ApiError, TaskTimeoutError
from druva_msp.pagination import (
    CURSOR_RESPONSE_FIELD,
    PageRequest,
    PaginationKind,
    PaginationStrategy,
    collect_all,
    iter_records,
    strategy_for,
)
from druva_msp._utils.dataframe import records_to_dataframe

logger = logging.getLogger(__name__)

REPORT_PATH_MARKERS = ("/reports/", "/reporting/")
_BODY_METHODS = {"POST", "PUT", "PATCH"}
TASK_FINISHED = 4


class DruvaMspClient:
    """
    Client for the Druva MSP management API.

    Reads configuration from environment variables (DRUVA_MSP_*) automatically.
    Provides both sync and async interfaces.

    Example:
        client = DruvaMspClient()
        customers = client.collect_all("GET", "/msp/v2/customers", "customers")

    Async Example:
        async with DruvaMspClient() as client:
            rows = await client.collect_all_async(
                "POST",
                "/msp/reporting/v1/reports/consumptionItemized",
                "data",
                body={"filters": report_filters(100, [])},
                kind=PaginationKind.PAGED_FILTERS,
            )

    Attributes:
        settings: DruvaMspSettings instance with API configuration
    """

    def __init__(self, settings: Optional[DruvaMspSettings] = None):
        """
        Initialize the API client.

        Args:
            settings: Optional DruvaMspSettings instance. If not provided,
                     settings are loaded from environment variables.
        """
        self.settings = settings or DruvaMspSettings()
        self._token_manager = TokenManager(self.settings)
        self._client: Optional[httpx.AsyncClient] = None
        self._debug = self.settings.enable_debug

    async def __aenter__(self) -> "DruvaMspClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(timeout=self.settings.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout)
        return self._client

    async def _get_headers(self) -> dict:
        """Get request headers with a bearer token."""
        token = await self._token_manager.get_token(self._get_client())
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    def _build_url(self, path: str) -> str:
        """Join the base URL and an endpoint path with exactly one slash."""
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.settings.api_base_url}{path}"

    @staticmethod
    def _is_report_path(path: str) -> bool:
        return any(marker in path for marker in REPORT_PATH_MARKERS)

    # -------------------------------------------------------------------------
    # Single request
    # -------------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
        query: Optional[dict] = None,
    ) -> dict:
        """
        Issue one authenticated request and return the parsed JSON body.

        A fresh token is obtained for the request. GET requests with an empty
        body are sent without a body at all.

        Args:
            method: HTTP method
            path: Endpoint path, e.g. "/msp/v2/customers"
            body: JSON request body
            query: Query string parameters

        Returns:
            Parsed response body

        Raises:
            AuthenticationError: If the token grant fails
            ApiError: On transport failure, non-2xx status or non-JSON body
        """
        method = method.upper()
        body = body or {}
        query = query or {}
        url = self._build_url(path)
        trace = self._debug and self._is_report_path(path)

        headers = await self._get_headers()
        kwargs: dict = {"headers": headers}
        if query:
            kwargs["params"] = query
        if method != "GET" or body:
            kwargs["json"] = body

        if trace:
            self._trace_request(method, url, body, query)

        client = self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error = ApiError(
                _error_message(e.response),
                status_code=e.response.status_code,
                endpoint=path,
            )
            if self._is_report_path(path):
                logger.error("API Error: %s - %s", error.status_code, error.message)
            raise error from e
        except httpx.RequestError as e:
            error = ApiError(str(e) or type(e).__name__, endpoint=path)
            if self._is_report_path(path):
                logger.error("API Error: no response - %s", error.message)
            raise error from e

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(
                "Response body is not valid JSON",
                status_code=response.status_code,
                endpoint=path,
            ) from e

        if trace:
            self._trace_response(data)
        return data

    def _trace_request(self, method: str, url: str, body: dict, query: dict) -> None:
        if method in _BODY_METHODS:
            detail = f" with {len(body)} parameters"
        elif query:
            detail = f" with {len(query)} query params"
        else:
            detail = ""
        logger.debug("API Request: %s %s%s", method, url, detail)

    def _trace_response(self, data: object) -> None:
        if not isinstance(data, dict):
            logger.debug("API Response: Success. Response type: %s", type(data).__name__)
            return
        if isinstance(data.get("data"), list):
            summary = f"Received {len(data['data'])} records"
        else:
            summary = f"Response keys: {', '.join(data.keys())}"
        more = " (has more pages)" if data.get(CURSOR_RESPONSE_FIELD) else ""
        logger.debug("API Response: Success. %s%s", summary, more)

    async def _send(self, page: PageRequest) -> dict:
        return await self.request(page.method, page.path, page.body, page.query)

    # -------------------------------------------------------------------------
    # Aggregation: async
    # -------------------------------------------------------------------------

    def _strategy(
        self,
        kind: PaginationKind | str,
        page_size: Optional[int],
        options: dict,
    ) -> PaginationStrategy:
        kind = PaginationKind(kind)
        if page_size is None:
            if kind in (PaginationKind.CURSOR_BODY, PaginationKind.PAGED_FILTERS):
                page_size = self.settings.report_page_size
            elif kind == PaginationKind.OFFSET_PAGE:
                page_size = self.settings.default_page_size
        return strategy_for(kind, page_size, **options)

    async def collect_all_async(
        self,
        method: str,
        path: str,
        items_key: Optional[str] = None,
        body: Optional[dict] = None,
        query: Optional[dict] = None,
        kind: PaginationKind | str = PaginationKind.CURSOR_QUERY,
        page_size: Optional[int] = None,
        **options,
    ) -> list[dict]:
        """
        Fetch every record from a paginated endpoint.

        Args:
            method: HTTP method
            path: Endpoint path
            items_key: Envelope key holding the records (defaults to "data"
                for PAGED_FILTERS and "items" otherwise)
            body: Body for the first request
            query: Query parameters for the first request
            kind: Pagination dialect of the endpoint
            page_size: Page size hint; report and offset endpoints fall back
                to the configured defaults
            **options: Strategy options (cursor_param, stop_on_short_page)

        Returns:
            All records in request order. A safety-limit stop returns the
            records gathered so far.

        Raises:
            AuthenticationError: If a token grant fails
            ApiError: If any page request fails or a response lacks items_key
        """
        strategy = self._strategy(kind, page_size, options)
        template = PageRequest(method.upper(), path, dict(body or {}), dict(query or {}))
        return await collect_all(
            self._send,
            strategy,
            template,
            items_key,
            max_requests=self.settings.max_requests,
            debug=self._debug,
        )

    async def stream_async(
        self,
        method: str,
        path: str,
        items_key: Optional[str] = None,
        body: Optional[dict] = None,
        query: Optional[dict] = None,
        kind: PaginationKind | str = PaginationKind.CURSOR_QUERY,
        page_size: Optional[int] = None,
        **options,
    ) -> AsyncIterator[dict]:
        """
        Stream records one at a time as pages arrive.

        Use this for large collections. Unlike collect_all_async(), records
        from pages fetched before a failure have already been yielded.

        Yields:
            Individual record dictionaries
        """
        strategy = self._strategy(kind, page_size, options)
        template = PageRequest(method.upper(), path, dict(body or {}), dict(query or {}))
        async for record in iter_records(
            self._send,
            strategy,
            template,
            items_key,
            max_requests=self.settings.max_requests,
            debug=self._debug,
        ):
            yield record

    async def collect_dataframe_async(
        self,
        method: str,
        path: str,
        items_key: Optional[str] = None,
        timestamp_fields: Iterable[str] = (),
        **kwargs,
    ) -> pd.DataFrame:
        """
        Async version of collect_dataframe().

        Returns:
            pandas DataFrame with one row per record
        """
        records = await self.collect_all_async(method, path, items_key, **kwargs)
        return records_to_dataframe(records, timestamp_fields=timestamp_fields)

    # -------------------------------------------------------------------------
    # Task polling
    # -------------------------------------------------------------------------

    async def wait_for_task_async(
        self,
        task_id: str,
        poll_interval: float = 5.0,
        timeout: float = 300.0,
    ) -> dict:
        """
        Poll a background task until it finishes or timeout.

        Args:
            task_id: Task identifier returned by a mutating call
            poll_interval: Seconds between status checks
            timeout: Maximum seconds to wait

        Returns:
            The finished task, enriched with status labels and datetimes

        Raises:
            TaskTimeoutError: If the task has not finished within timeout
            ApiError: If a status request fails
        """
        path = f"/msp/v2/tasks/{task_id}"
        deadline = time.monotonic() + timeout
        attempt = 0

        while True:
            attempt += 1
            task = await self.request("GET", path)
            status = task.get("status") if isinstance(task, dict) else None

            if status == TASK_FINISHED:
                if self._debug:
                    logger.debug("Task: %s finished after %d polls", task_id, attempt)
                return enrich_task(task)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TaskTimeoutError(
                    f"Task {task_id} did not complete within {timeout} seconds",
                    task_id=task_id,
                )

            if self._debug:
                logger.debug(
                    "Task: %s not complete yet (status: %s), waiting %ss",
                    task_id,
                    status,
                    poll_interval,
                )
            await asyncio.sleep(min(poll_interval, remaining))

    # -------------------------------------------------------------------------
    # Aggregation: sync (convenience wrappers)
    # -------------------------------------------------------------------------

    def collect_all(
        self,
        method: str,
        path: str,
        items_key: Optional[str] = None,
        body: Optional[dict] = None,
        query: Optional[dict] = None,
        kind: PaginationKind | str = PaginationKind.CURSOR_QUERY,
        page_size: Optional[int] = None,
        **options,
    ) -> list[dict]:
        """
        Fetch every record from a paginated endpoint.

        See collect_all_async() for arguments.

        Example:
            tenants = client.collect_all("GET", "/msp/v2/tenants", "tenants")
        """
        return asyncio.run(
            self._run_and_close(
                self.collect_all_async(
                    method, path, items_key, body, query, kind, page_size, **options
                )
            )
        )

    def collect_dataframe(
        self,
        method: str,
        path: str,
        items_key: Optional[str] = None,
        timestamp_fields: Iterable[str] = (),
        **kwargs,
    ) -> pd.DataFrame:
        """
        Fetch every record and return them as a DataFrame.

        Args:
            timestamp_fields: Columns holding Unix timestamps to convert
                to datetimes

        Example:
            df = client.collect_dataframe(
                "GET", "/msp/v2/events", "events", timestamp_fields=["timestamp"]
            )
        """
        return asyncio.run(
            self._run_and_close(
                self.collect_dataframe_async(
                    method, path, items_key, timestamp_fields, **kwargs
                )
            )
        )

    def wait_for_task(
        self,
        task_id: str,
        poll_interval: float = 5.0,
        timeout: float = 300.0,
    ) -> dict:
        """
        Block until a background task finishes.

        Example:
            task = client.wait_for_task("8f3c2a", timeout=600)
            print(task["status_label"], task.get("output_status_label"))
        """
        return asyncio.run(
            self._run_and_close(
                self.wait_for_task_async(task_id, poll_interval, timeout)
            )
        )

    async def _run_and_close(self, coro):
        """Await coro, then close the httpx client bound to this event loop."""
        try:
            return await coro
        finally:
            await self.aclose()


def _error_message(response: httpx.Response) -> str:
    """Best-effort error message from an error response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "error_description", "error", "detail"):
            if payload.get(key):
                return str(payload[key])
    return response.text or response.reason_phrase or "Unknown error"
