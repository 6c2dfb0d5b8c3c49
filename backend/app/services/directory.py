"""Employee directory pagination.

Two strategies behind one interface: keyset cursors over ``createdAt`` when
browsing, and fetch-all-then-slice when a search term is present, because the
``ARRAY_CONTAINS`` search cannot be combined with the ordered cursor query.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from collections.abc import AsyncIterator
from typing import Protocol

from app.models.directory import DirectoryFilters, DirectoryPage
from app.models.employee import EmployeeRecord, EmployeeSummary
from app.services.employee_id import normalize_search_term
from app.services.employee_service import EmployeeQuery


class InvalidCursorError(ValueError):
    pass


class EmployeeStore(Protocol):
    async def query(self, query: EmployeeQuery) -> list[EmployeeRecord]: ...


def encode_cursor(record: EmployeeRecord) -> str:
    raw = json.dumps({"createdAt": record.created_at or "", "id": record.id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str | None) -> tuple[str, str] | None:
    if not cursor:
        return None
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        return str(data["createdAt"]), str(data["id"])
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        raise InvalidCursorError("Invalid page cursor") from e


class PaginatedQuery(Protocol):
    mode: str

    async def fetch_page(self, store: EmployeeStore, page: int, cursor: str | None = None) -> DirectoryPage: ...


class CursorPageQuery:
    """Newest first, one page per request, continuing after the previous page's last row."""

    mode = "listing"

    def __init__(self, filters: DirectoryFilters, page_size: int) -> None:
        self.filters = filters
        self.page_size = page_size

    async def fetch_page(self, store: EmployeeStore, page: int, cursor: str | None = None) -> DirectoryPage:
        query = EmployeeQuery(
            equalities=self.filters.as_equalities(),
            after=decode_cursor(cursor),
            limit=self.page_size,
        )
        records = await store.query(query)
        has_next = len(records) == self.page_size
        return DirectoryPage(
            mode="listing",
            items=[EmployeeSummary.from_record(r) for r in records],
            page=page,
            page_size=self.page_size,
            has_next=has_next,
            has_previous=page > 1,
            next_cursor=encode_cursor(records[-1]) if has_next else None,
        )


class SearchPageQuery:
    """All matches for the term and filters, paginated in memory."""

    mode = "search"

    def __init__(self, filters: DirectoryFilters, search_term: str, page_size: int) -> None:
        self.filters = filters
        self.search_term = normalize_search_term(search_term)
        self.page_size = page_size

    async def fetch_matches(self, store: EmployeeStore) -> list[EmployeeRecord]:
        query = EmployeeQuery(equalities=self.filters.as_equalities(), search_term=self.search_term)
        matches = await store.query(query)
        # The store returns matches unordered; sort so page slices are stable between requests.
        matches.sort(key=lambda r: (r.created_at or "", r.id), reverse=True)
        return matches

    async def fetch_page(self, store: EmployeeStore, page: int, cursor: str | None = None) -> DirectoryPage:
        matches = await self.fetch_matches(store)
        total_pages = max(1, math.ceil(len(matches) / self.page_size))
        page = min(max(page, 1), total_pages)
        start = (page - 1) * self.page_size
        window = matches[start : start + self.page_size]
        return DirectoryPage(
            mode="search",
            items=[EmployeeSummary.from_record(r) for r in window],
            page=page,
            page_size=self.page_size,
            has_next=page < total_pages,
            has_previous=page > 1,
            total_matches=len(matches),
            total_pages=total_pages,
        )


def select_query(filters: DirectoryFilters, search: str | None, page_size: int) -> PaginatedQuery:
    if normalize_search_term(search):
        return SearchPageQuery(filters, search or "", page_size)
    return CursorPageQuery(filters, page_size)


class DirectoryPager:
    """Stateful browsing over the directory: next/previous with a cursor history.

    Changing filters or the search term always returns to page 1.
    """

    def __init__(self, store: EmployeeStore, page_size: int) -> None:
        self.store = store
        self.page_size = page_size
        self.filters = DirectoryFilters()
        self.search: str | None = None
        self.strategy: PaginatedQuery = select_query(self.filters, None, page_size)
        self.page = 1
        # Cursor used to load each visited page; index 0 is page 1.
        self._cursors: list[str | None] = [None]
        self.current: DirectoryPage | None = None

    async def apply(self, filters: DirectoryFilters | None = None, search: str | None = None) -> DirectoryPage:
        self.filters = filters or DirectoryFilters()
        self.search = search
        self.strategy = select_query(self.filters, search, self.page_size)
        self.page = 1
        self._cursors = [None]
        return await self._load()

    async def _load(self) -> DirectoryPage:
        cursor = self._cursors[self.page - 1] if self.strategy.mode == "listing" else None
        self.current = await self.strategy.fetch_page(self.store, self.page, cursor)
        return self.current

    async def next(self) -> DirectoryPage:
        if self.current is None:
            return await self._load()
        if not self.current.has_next:
            return self.current
        if self.strategy.mode == "listing":
            del self._cursors[self.page :]
            self._cursors.append(self.current.next_cursor)
        self.page += 1
        return await self._load()

    async def previous(self) -> DirectoryPage:
        if self.current is None:
            return await self._load()
        if self.page <= 1:
            return self.current
        self.page -= 1
        return await self._load()

    async def iterate_all(self) -> AsyncIterator[EmployeeSummary]:
        page = await self.apply(self.filters, self.search)
        while True:
            for item in page.items:
                yield item
            if not page.has_next:
                return
            page = await self.next()
