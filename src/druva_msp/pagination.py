"""
Pagination strategies and the record aggregator for the Druva MSP API.

The API exposes four pagination dialects. The dialect is a property of the
endpoint, so callers pick a strategy explicitly with PaginationKind:

    CURSOR_QUERY   nextPageToken echoed back as a query parameter
    CURSOR_BODY    nextPageToken echoed back as the sole JSON body field
    PAGED_FILTERS  report v2 bodies with a nested filters object
    OFFSET_PAGE    explicit page / pageSize numbers

The API accepts either a page token or filters on a request, never both.
Every cursor strategy therefore sends the caller's full filters on the first
request and only the token on every request after it.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from druva_msp.exceptions import ResponseShapeError
from druva_msp.guard import DEFAULT_MAX_REQUESTS, LoopGuard

logger = logging.getLogger(__name__)

CURSOR_RESPONSE_FIELD = "nextPageToken"
CURSOR_REQUEST_FIELD = "pageToken"
DEFAULT_PAGE_SIZE = 100
SINGLE_ITEM_PAGE_WARNING = 5


class PaginationKind(str, Enum):
    """
    Pagination dialects spoken by Druva MSP endpoints.

    Attributes:
        CURSOR_QUERY: Cursor sent in the query string
        CURSOR_BODY: Cursor sent as the only JSON body field
        PAGED_FILTERS: Report v2 style filters object, then cursor-only body
        OFFSET_PAGE: Incrementing page number with a fixed pageSize
    """
    CURSOR_QUERY = "cursor_query"
    CURSOR_BODY = "cursor_body"
    PAGED_FILTERS = "paged_filters"
    OFFSET_PAGE = "offset_page"


@dataclass(frozen=True)
class PageRequest:
    """
    One request in an aggregation.

    The caller's template is never mutated; strategies derive a new
    PageRequest for every page.
    """

    method: str
    path: str
    body: dict = field(default_factory=dict)
    query: dict = field(default_factory=dict)

    def replace(self, **changes) -> "PageRequest":
        return dataclasses.replace(self, **changes)


SendFn = Callable[[PageRequest], Awaitable[dict]]


class PaginationStrategy:
    """
    Base class for the four pagination dialects.

    Subclasses build the first request from the caller's template and derive
    each following request from the previous one and its response. Returning
    None from next_request() ends the aggregation.
    """

    kind: PaginationKind
    label = "Pagination"
    default_items_key = "items"

    def __init__(self, page_size: Optional[int] = None):
        if page_size is not None and page_size < 1:
            raise ValueError("page_size must be a positive integer")
        self.page_size = page_size

    def first_request(self, template: PageRequest) -> PageRequest:
        raise NotImplementedError

    def next_request(
        self,
        template: PageRequest,
        previous: PageRequest,
        envelope: dict,
        items: list,
        guard: LoopGuard,
    ) -> Optional[PageRequest]:
        raise NotImplementedError


class CursorQueryStrategy(PaginationStrategy):
    """
    Cursor in the query string.

    The first request keeps the template's query parameters. Later requests
    send only the cursor: every other query parameter is dropped. Paging ends
    when a response carries no nextPageToken.
    """

    kind = PaginationKind.CURSOR_QUERY
    label = "AllItems"

    def __init__(
        self,
        page_size: Optional[int] = None,
        cursor_param: str = CURSOR_REQUEST_FIELD,
    ):
        super().__init__(page_size)
        self.cursor_param = cursor_param

    def first_request(self, template: PageRequest) -> PageRequest:
        query = dict(template.query)
        if self.page_size is not None:
            query.setdefault("pageSize", self.page_size)
        return template.replace(query=query, body=dict(template.body))

    def next_request(self, template, previous, envelope, items, guard):
        cursor = envelope.get(CURSOR_RESPONSE_FIELD)
        if not guard.check(cursor):
            return None
        return template.replace(query={self.cursor_param: cursor}, body=dict(template.body))


class CursorBodyStrategy(PaginationStrategy):
    """
    Cursor as the sole JSON body field.

    The first request sends the template body, with pageSize defaulted when a
    page size is configured. Later requests send {"pageToken": cursor} and
    nothing else. Paging ends on a missing cursor or an empty page.
    """

    kind = PaginationKind.CURSOR_BODY
    label = "Report"

    def first_request(self, template: PageRequest) -> PageRequest:
        body = copy.deepcopy(template.body)
        if self.page_size is not None:
            body.setdefault("pageSize", self.page_size)
        return template.replace(body=body, query=dict(template.query))

    def next_request(self, template, previous, envelope, items, guard):
        if not items:
            return None
        cursor = envelope.get(CURSOR_RESPONSE_FIELD)
        if not guard.check(cursor):
            return None
        return template.replace(body={CURSOR_REQUEST_FIELD: cursor}, query={})


class PagedFiltersStrategy(PaginationStrategy):
    """
    Report v2 endpoints with a nested filters object.

    The first body carries {"filters": {"pageSize": n, "filterBy": [...]}};
    pageSize is filled in when missing. Bodies without a filters object get a
    top-level pageSize instead. Continuations replace the whole body with
    {"pageToken": cursor}. Records come back under "data".
    """

    kind = PaginationKind.PAGED_FILTERS
    label = "ReportV2"
    default_items_key = "data"

    def __init__(self, page_size: Optional[int] = DEFAULT_PAGE_SIZE):
        super().__init__(page_size or DEFAULT_PAGE_SIZE)

    def first_request(self, template: PageRequest) -> PageRequest:
        body = copy.deepcopy(template.body)
        filters = body.get("filters")
        if isinstance(filters, dict):
            if not filters.get("pageSize"):
                filters["pageSize"] = self.page_size
        elif body.get("pageSize") is None:
            body["pageSize"] = self.page_size
        return template.replace(body=body, query=dict(template.query))

    def next_request(self, template, previous, envelope, items, guard):
        if not items:
            return None
        cursor = envelope.get(CURSOR_RESPONSE_FIELD)
        if not guard.check(cursor):
            return None
        return template.replace(body={CURSOR_REQUEST_FIELD: cursor}, query={})


class OffsetPageStrategy(PaginationStrategy):
    """
    Classic page / pageSize paging.

    page and pageSize travel in the query string for GET requests and in the
    JSON body otherwise. The page number starts at the template's page (or 1)
    and increments per request. An empty page ends paging, as does a page
    shorter than pageSize unless stop_on_short_page is False (for endpoints
    that cap the page size below the one requested). Two consecutive short
    pages of equal size are treated as a stall.
    """

    kind = PaginationKind.OFFSET_PAGE
    label = "PagedItems"

    def __init__(
        self,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
        stop_on_short_page: bool = True,
    ):
        super().__init__(page_size or DEFAULT_PAGE_SIZE)
        self.stop_on_short_page = stop_on_short_page

    @staticmethod
    def _params(request: PageRequest) -> dict:
        return request.query if request.method.upper() == "GET" else request.body

    def _with_params(self, request: PageRequest, page: int, page_size: int) -> PageRequest:
        params = dict(self._params(request))
        params["page"] = page
        params["pageSize"] = page_size
        if request.method.upper() == "GET":
            return request.replace(query=params)
        return request.replace(body=params)

    def first_request(self, template: PageRequest) -> PageRequest:
        params = self._params(template)
        page = int(params.get("page") or 1)
        page_size = int(params.get("pageSize") or self.page_size)
        return self._with_params(template, page, page_size)

    def next_request(self, template, previous, envelope, items, guard):
        params = self._params(previous)
        page = params["page"]
        page_size = params["pageSize"]
        count = len(items)

        if count == 0:
            return None
        if not guard.offset_stall.check(count, page_size, page):
            return None
        if count < page_size and self.stop_on_short_page:
            return None
        if not guard.admit():
            return None
        return self._with_params(previous, page + 1, page_size)


_STRATEGIES = {
    PaginationKind.CURSOR_QUERY: CursorQueryStrategy,
    PaginationKind.CURSOR_BODY: CursorBodyStrategy,
    PaginationKind.PAGED_FILTERS: PagedFiltersStrategy,
    PaginationKind.OFFSET_PAGE: OffsetPageStrategy,
}


def strategy_for(
    kind: PaginationKind | str,
    page_size: Optional[int] = None,
    **options,
) -> PaginationStrategy:
    """
    Build the strategy for a pagination dialect.

    Args:
        kind: PaginationKind or its string value
        page_size: Page size hint; strategies with a built-in default use it
            when this is None
        **options: Strategy-specific keyword arguments (cursor_param,
            stop_on_short_page)

    Returns:
        A fresh strategy instance
    """
    strategy_cls = _STRATEGIES[PaginationKind(kind)]
    if page_size is None:
        return strategy_cls(**options)
    return strategy_cls(page_size=page_size, **options)


def extract_items(envelope: object, items_key: str, endpoint: Optional[str] = None) -> list:
    """
    Pull the record list out of a response envelope.

    A null value counts as an empty page. A missing key, or a value that is
    not a list, raises ResponseShapeError.
    """
    if not isinstance(envelope, dict):
        raise ResponseShapeError(
            items_key,
            endpoint=endpoint,
            detail=f"Expected a JSON object but received {type(envelope).__name__}",
        )
    if items_key not in envelope:
        raise ResponseShapeError(items_key, endpoint=endpoint, keys=envelope.keys())

    items = envelope[items_key]
    if items is None:
        return []
    if not isinstance(items, list):
        raise ResponseShapeError(
            items_key,
            endpoint=endpoint,
            keys=envelope.keys(),
            detail=f'Expected an array under key "{items_key}"',
        )
    return items


async def iter_pages(
    send: SendFn,
    strategy: PaginationStrategy,
    template: PageRequest,
    items_key: Optional[str] = None,
    guard: Optional[LoopGuard] = None,
    debug: bool = False,
) -> AsyncIterator[list]:
    """
    Async generator that drives a strategy and yields each page's records.

    Requests are issued strictly one after another. Errors from send()
    propagate unchanged; a guard stop simply ends iteration.

    Args:
        send: Async callable executing one PageRequest and returning the
            parsed response body
        strategy: Pagination strategy for the endpoint
        template: Request skeleton supplied by the caller
        items_key: Envelope key holding the records (strategy default if None)
        guard: LoopGuard owning this aggregation's state
        debug: Emit per-page debug traces

    Yields:
        The list of records from each page, in request order
    """
    items_key = items_key or strategy.default_items_key
    guard = guard or LoopGuard(label=strategy.label)

    if not guard.admit_first():
        return
    request: Optional[PageRequest] = strategy.first_request(template)
    single_item_pages = 0

    while request is not None:
        if debug:
            logger.debug(
                "%s: Request %d to %s (%d body fields, %d query params)",
                strategy.label,
                guard.request_count,
                request.path,
                len(request.body),
                len(request.query),
            )

        envelope = await send(request)
        items = extract_items(envelope, items_key, request.path)

        if debug:
            logger.debug(
                "%s: Response contains %d items, nextPageToken: %s",
                strategy.label,
                len(items),
                envelope.get(CURSOR_RESPONSE_FIELD),
            )

        single_item_pages = single_item_pages + 1 if len(items) == 1 else 0
        if debug and single_item_pages == SINGLE_ITEM_PAGE_WARNING:
            logger.warning(
                "%s: Received %d consecutive pages with only 1 item. "
                "Pagination continues but is inefficient.",
                strategy.label,
                single_item_pages,
            )

        yield items
        request = strategy.next_request(template, request, envelope, items, guard)


async def iter_records(
    send: SendFn,
    strategy: PaginationStrategy,
    template: PageRequest,
    items_key: Optional[str] = None,
    max_requests: int = DEFAULT_MAX_REQUESTS,
    debug: bool = False,
) -> AsyncIterator[dict]:
    """
    Async generator yielding records one at a time across all pages.

    Example:
        async for record in iter_records(send, strategy, template, "customers"):
            print(record["id"])
    """
    guard = LoopGuard(max_requests, label=strategy.label)
    async for items in iter_pages(send, strategy, template, items_key, guard, debug):
        for item in items:
            yield item


async def collect_all(
    send: SendFn,
    strategy: PaginationStrategy,
    template: PageRequest,
    items_key: Optional[str] = None,
    max_requests: int = DEFAULT_MAX_REQUESTS,
    debug: bool = False,
) -> list[dict]:
    """
    Fetch every page and return the records as one flat list.

    A safety-limit stop (request ceiling or repeated cursor) returns what was
    gathered so far. Any error raised while fetching a page propagates and
    nothing is returned.

    Args:
        send: Async callable executing one PageRequest
        strategy: Pagination strategy for the endpoint
        template: Request skeleton supplied by the caller
        items_key: Envelope key holding the records
        max_requests: Request ceiling for this aggregation
        debug: Emit per-page debug traces

    Returns:
        All records in request order

    Raises:
        ApiError: If a page request fails or a response lacks items_key
        AuthenticationError: If a token grant fails
    """
    guard = LoopGuard(max_requests, label=strategy.label)
    async for items in iter_pages(send, strategy, template, items_key, guard, debug):
        guard.state.accumulated.extend(items)

    if debug:
        logger.debug(
            "%s: Complete. Retrieved %d items total across %d requests",
            strategy.label,
            len(guard.state.accumulated),
            guard.request_count,
        )
    return list(guard.state.accumulated)
