"""Run ordered fetch strategies until one yields usable records."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .auth import classify_failure
from .fetching import CategoryFetchResult, FetchStatus, StrategyFailure

if TYPE_CHECKING:
    from .fetching import FetchStrategy, RunContext
    from .model import Category
    from .normalization import Normalizer

log = getLogger(__name__)

DEFAULT_MAX_PAGES = 50


@dataclass(frozen=True, slots=True)
class Page:
    items: Sequence[object]
    total_count: int | None = None
    next_cursor: str | None = None


@dataclass(slots=True)
class PageCollection:
    items: list[object] = field(default_factory=list)
    total_count: int | None = None
    pages: int = 0
    truncated: bool = False


PageFetcher = Callable[[int, str | None], Awaitable[Page]]


async def collect_pages(
    fetch_page: PageFetcher,
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    label: str = "source",
) -> PageCollection:
    """Fetch pages sequentially while the source reports more records.

    Continues while ``accumulated < total_count`` or, when no total is reported,
    while the source hands back a next-page cursor. ``max_pages`` bounds the loop
    against paginators that never stop.
    """

    collection = PageCollection()
    cursor: str | None = None
    while collection.pages < max_pages:
        page = await fetch_page(collection.pages + 1, cursor)
        collection.pages += 1
        if page.total_count is not None:
            collection.total_count = page.total_count
        if not page.items:
            return collection
        collection.items.extend(page.items)

        if collection.total_count is not None:
            if len(collection.items) >= collection.total_count:
                return collection
        elif page.next_cursor is None:
            return collection
        cursor = page.next_cursor

    collection.truncated = True
    log.warning(
        "%s: stopped after %s pages with %s/%s records",
        label,
        max_pages,
        len(collection.items),
        collection.total_count if collection.total_count is not None else "?",
    )
    return collection


@dataclass(slots=True)
class StrategyChain[TRecord]:
    """Ordered fallback over the strategies of one record category."""

    category: Category
    strategies: Sequence[FetchStrategy]
    normalize: Normalizer[TRecord]
    auth_codes: frozenset[int] = frozenset()

    async def run(self, context: RunContext) -> CategoryFetchResult[TRecord]:
        failures: list[StrategyFailure] = []
        unparseable = 0

        for strategy in self.strategies:
            try:
                response = await strategy.fetch(context)
            except Exception as exc:  # noqa: BLE001
                error = classify_failure(exc, auth_codes=self.auth_codes)
                log.warning(
                    "%s: strategy %s failed (%s): %s",
                    self.category,
                    strategy.name,
                    type(error).__name__,
                    error,
                )
                failures.append(StrategyFailure(strategy=strategy.name, error=error))
                continue

            normalized = self.normalize(response.records, response.fields)
            unparseable += normalized.unparseable
            if normalized.records:
                log.info(
                    f"{self.category}: {len(normalized.records)} records from {strategy.name} "
                    f"({normalized.unparseable} unparseable)"
                )
                return CategoryFetchResult(
                    category=self.category,
                    status=FetchStatus.RECORDS,
                    records=normalized.records,
                    strategy=strategy.name,
                    unparseable=unparseable,
                    failures=failures,
                )
            if response.confirmed_empty and not normalized.unparseable:
                log.info("%s: %s confirmed zero records", self.category, strategy.name)
                return CategoryFetchResult(
                    category=self.category,
                    status=FetchStatus.CONFIRMED_EMPTY,
                    strategy=strategy.name,
                    unparseable=unparseable,
                    failures=failures,
                )
            log.info(
                "%s: strategy %s returned nothing usable (%s raw, %s unparseable)",
                self.category,
                strategy.name,
                len(response.records),
                normalized.unparseable,
            )

        log.warning(
            "%s: all %s strategies exhausted without usable data",
            self.category,
            len(self.strategies),
        )
        return CategoryFetchResult(
            category=self.category,
            status=FetchStatus.NO_DATA,
            unparseable=unparseable,
            failures=failures,
        )
