"""Loop and safety guards shared by every pagination strategy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 100


@dataclass
class PaginationState:
    """
    Mutable bookkeeping for one aggregation.

    Created when an aggregation starts and discarded when it ends. Never
    shared between aggregations.

    Attributes:
        seen_cursors: Every cursor that has been sent to the server
        request_count: Requests issued or admitted so far
        current_cursor: Cursor for the next request, if any
        accumulated: Records collected so far, in request order
    """

    seen_cursors: set[str] = field(default_factory=set)
    request_count: int = 0
    current_cursor: Optional[str] = None
    accumulated: list[dict] = field(default_factory=list)


class LoopGuard:
    """
    Enforces the request ceiling and cursor-repeat detection.

    Reaching a limit is an operational boundary, not a fault: check() and
    admit() return False and log a warning instead of raising.

    Example:
        guard = LoopGuard(max_requests=100)
        guard.admit_first()
        while guard.check(envelope.get("nextPageToken")):
            ...
    """

    def __init__(self, max_requests: int = DEFAULT_MAX_REQUESTS, label: str = "Pagination"):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.label = label
        self.state = PaginationState()
        self.offset_stall = OffsetStallDetector(label)

    @property
    def request_count(self) -> int:
        return self.state.request_count

    def admit_first(self) -> bool:
        """Count the initial request, which never carries a cursor."""
        return self.admit()

    def admit(self) -> bool:
        """
        Count one more request against the ceiling.

        Returns:
            True if the request may be issued
        """
        if self._ceiling_reached():
            return False
        self.state.request_count += 1
        return True

    def _ceiling_reached(self) -> bool:
        if self.state.request_count + 1 <= self.max_requests:
            return False
        logger.warning(
            "%s: Reached maximum number of pagination requests (%d). "
            "This might indicate an API issue.",
            self.label,
            self.max_requests,
        )
        return True

    def check(self, cursor: Optional[str]) -> bool:
        """
        Decide whether a request with this cursor may be issued.

        Rules, in order: no cursor stops quietly; the ceiling stops with a
        warning; a cursor seen before stops with a warning. Otherwise the
        cursor is recorded and the request is counted.

        Args:
            cursor: nextPageToken from the latest response

        Returns:
            True to continue, False to stop
        """
        if not cursor:
            self.state.current_cursor = None
            return False

        if self._ceiling_reached():
            return False

        if cursor in self.state.seen_cursors:
            logger.warning(
                "%s: Detected pagination loop with token: %s. Stopping pagination.",
                self.label,
                cursor,
            )
            return False

        self.state.seen_cursors.add(cursor)
        self.state.request_count += 1
        self.state.current_cursor = cursor
        return True


class OffsetStallDetector:
    """
    Detects an offset-paged collection that stops advancing.

    Two consecutive non-full, non-empty pages of identical size are treated
    as a stall. This is a heuristic: a collection that changes between page
    fetches can produce two equal partial pages by coincidence.
    """

    def __init__(self, label: str = "PagedItems"):
        self.label = label
        self.previous_count: Optional[int] = None

    def check(self, item_count: int, page_size: int, page: int) -> bool:
        """
        Record a page and report whether paging may continue.

        Returns:
            False when a stall is detected
        """
        stalled = (
            0 < item_count < page_size
            and self.previous_count == item_count
        )
        self.previous_count = item_count
        if stalled:
            logger.warning(
                "%s: Detected potential pagination loop at page %d. Stopping pagination.",
                self.label,
                page,
            )
            return False
        return True
