from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .errors import ApiError, SessionExpiredError
from .models import PaginationMeta, User, UsersPage
from .pagination import PageItem, UsersQuery, is_page_number, page_window


logger = logging.getLogger(__name__)


class UsersSource(Protocol):
    async def list_users(self, query: Optional[UsersQuery] = None) -> UsersPage: ...


class UsersListController:
    """Page/filter state for the user directory.

    Responses are applied only when they belong to the newest request and
    its query still matches the current one; anything older is dropped.
    Prior items stay in place while a refetch runs.
    """

    def __init__(
        self,
        source: UsersSource,
        page_size: int = 9,
        sort_by: Optional[str] = "createdAt",
        sort_order: Optional[str] = "desc",
        max_visible: int = 5,
    ):
        self.source = source
        self.query = UsersQuery(page=1, limit=page_size, sort_by=sort_by, sort_order=sort_order)
        self._initial = self.query
        self.max_visible = max_visible
        self.items: List[User] = []
        self.pagination: Optional[PaginationMeta] = None
        self.error: Optional[ApiError] = None
        self._seq = 0
        self._inflight: Optional[Tuple[UsersQuery, asyncio.Future]] = None

    @property
    def page(self) -> int:
        return self.query.page

    @property
    def age(self) -> Optional[int]:
        return self.query.age

    @property
    def total_pages(self) -> int:
        return self.pagination.total_pages if self.pagination else 0

    @property
    def is_fetching(self) -> bool:
        return self._inflight is not None and not self._inflight[1].done()

    @property
    def is_loading(self) -> bool:
        # first load only; refetches keep the old page on screen
        return self.is_fetching and self.pagination is None

    @property
    def has_next(self) -> bool:
        return bool(self.pagination and self.pagination.has_next)

    @property
    def has_prev(self) -> bool:
        return bool(self.pagination and self.pagination.has_prev)

    def page_window(self) -> List[PageItem]:
        return page_window(self.page, self.total_pages, self.max_visible)

    def showing_range(self) -> Tuple[int, int, int]:
        if not self.pagination or not self.items:
            return 0, 0, 0
        total = self.pagination.total
        first = (self.page - 1) * self.query.limit + 1
        return first, min(self.page * self.query.limit, total), total

    async def refresh(self) -> None:
        query = self.query
        if self._inflight is not None and self._inflight[0] == query and not self._inflight[1].done():
            await self._wait(self._inflight[1])
            return

        self._seq += 1
        seq = self._seq
        task = asyncio.ensure_future(self.source.list_users(query))
        self._inflight = (query, task)
        try:
            result = await task
        except ApiError as e:
            if self._is_current(seq, query):
                self.error = e
            if isinstance(e, SessionExpiredError):
                raise
            logger.exception("Listing users failed: %s", e.message)
            return
        finally:
            if seq == self._seq:
                self._inflight = None

        if not self._is_current(seq, query):
            logger.debug("Dropping stale users page for %s", query)
            return
        self.items = result.items
        self.pagination = result.pagination
        self.error = None

    async def go_to_page(self, page: Any) -> bool:
        if not is_page_number(page) or page < 1 or page > max(self.total_pages, 1):
            return False
        self.query = self.query.with_page(page)
        await self.refresh()
        return True

    async def next_page(self) -> bool:
        if not self.has_next:
            return False
        return await self.go_to_page(self.page + 1)

    async def previous_page(self) -> bool:
        if not self.has_prev:
            return False
        return await self.go_to_page(self.page - 1)

    async def set_filter(self, age: Optional[int]) -> None:
        if age == self.query.age:
            if self._inflight is not None:
                await self._wait(self._inflight[1])
            return
        self.query = self.query.with_age(age)
        await self.refresh()

    async def show(self, page: Any = None, age: Optional[int] = None) -> None:
        """Apply the requested page and filter, then fetch once.

        An unchanged request still refetches; the current items stay visible
        meanwhile.
        """
        target = self.query
        if age != target.age:
            target = target.with_age(age)
            # page count under a new filter is unknown until it answers
            if is_page_number(page) and page > 1:
                target = target.with_page(page)
        elif is_page_number(page) and 1 <= page <= max(self.total_pages, 1):
            target = target.with_page(page)
        self.query = target
        await self.refresh()

        last = self.total_pages
        if self.pagination is not None and last and self.page > last:
            await self.go_to_page(last)

    def reset(self) -> None:
        """Forget everything loaded for the previous session."""
        # responses still in flight no longer match
        self._seq += 1
        self._inflight = None
        self.query = self._initial
        self.items = []
        self.pagination = None
        self.error = None

    def state(self) -> Dict[str, Any]:
        first, last, total = self.showing_range()
        return {
            "items": [u.model_dump(by_alias=True) for u in self.items],
            "pagination": self.pagination.model_dump(by_alias=True) if self.pagination else None,
            "page": self.page,
            "age": self.age,
            "pageWindow": self.page_window(),
            "showing": {"from": first, "to": last, "total": total},
            "isLoading": self.is_loading,
            "isFetching": self.is_fetching,
            "error": self.error.to_dict() if self.error else None,
        }

    def _is_current(self, seq: int, query: UsersQuery) -> bool:
        return seq == self._seq and query == self.query

    async def _wait(self, fut: asyncio.Future) -> None:
        # the original caller reports the outcome
        await asyncio.wait([fut])
