"""Concrete fetch strategies against the partner platform.

Each strategy performs one way of obtaining the raw records of a category and
hands them back untouched together with the field table that describes their
shape. Normalization happens in the chain.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, cast

from payoutsync.domain.fetching import StrategyResponse
from payoutsync.domain.normalization import (
    CENTER_PAYOUT_FIELDS,
    DASHBOARD_FIELDS,
    OPEN_API_OVERVIEW_FIELDS,
    OPEN_API_PAYMENT_FIELDS,
    OPEN_API_SETTLEMENT_FIELDS,
    OPEN_API_STATEMENT_FIELDS,
    extract_dashboard_metrics,
    first_present,
)
from payoutsync.domain.strategy_chain import DEFAULT_MAX_PAGES, Page, PageCollection, collect_pages

from .client import PartnerAPIError
from .schema import PaymentsPage, PayoutSearchPage, SettlementsPage, StatementsPage

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date

    from payoutsync.adapters.http_resilience import ResilientClient
    from payoutsync.domain.fetching import RunContext

    from .client import OpenApiClient, PartnerCenterClient
    from .schema import ListPage

log = getLogger(__name__)

STATEMENTS_PATH = "/finance/202309/statements"
PAYMENT_PATHS = (
    "/finance/202309/payments",
    "/finance/202309/payouts",
    "/finance/202309/withdrawals",
)
SETTLEMENTS_PATH = "/api/finance/settlements/search"
OVERVIEW_PATH = "/api/data/overview"
PAYOUT_SEARCH_PATH = "/api/v1/affiliate/partner/payout/search"

STATEMENT_TYPES = ("PRODUCT_DISTRIBUTION", "AFFILIATE", "COMMISSION", "SETTLE")

OPEN_API_PAGE_SIZE = 100
CENTER_PAGE_SIZE = 20


def _epoch_seconds(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=UTC).timestamp())


def _window(context: RunContext) -> tuple[int, int]:
    """Epoch bounds covering the lookback window through the end of the run date."""

    end = context.run_date + timedelta(days=1)
    return _epoch_seconds(context.window_start), _epoch_seconds(end)


def _as_page(listing: ListPage) -> Page:
    return Page(
        items=listing.items,
        total_count=listing.total_count,
        next_cursor=listing.next_page_token,
    )


def _confirmed_empty(collection: PageCollection) -> bool:
    return not collection.items and collection.total_count == 0


async def _statement_pages(
    api: OpenApiClient,
    client: ResilientClient,
    context: RunContext,
    *,
    statement_type: str | None,
    max_pages: int,
    label: str,
) -> PageCollection:
    start, end = _window(context)
    base_body: dict[str, object] = {
        "page_size": OPEN_API_PAGE_SIZE,
        "sort_order": "DESC",
        "statement_time": {"start_time": start, "end_time": end},
    }
    if statement_type is not None:
        base_body["statement_type"] = statement_type

    async def fetch_page(_page: int, cursor: str | None) -> Page:
        body = dict(base_body)
        if cursor is not None:
            body["page_token"] = cursor
        envelope = await api.call(client, "POST", STATEMENTS_PATH, body=body)
        return _as_page(StatementsPage.model_validate(envelope.data or {}))

    return await collect_pages(fetch_page, max_pages=max_pages, label=label)


@dataclass(slots=True)
class OpenApiStatementsStrategy:
    """Finance statements through the signed API, date range in the JSON body."""

    api: OpenApiClient
    name: str = "open-api/statements"
    max_pages: int = DEFAULT_MAX_PAGES

    async def fetch(self, context: RunContext) -> StrategyResponse:
        async with self.api.session() as client:
            collection = await _statement_pages(
                self.api,
                client,
                context,
                statement_type=None,
                max_pages=self.max_pages,
                label=self.name,
            )
        return StrategyResponse(
            records=collection.items,
            fields=OPEN_API_STATEMENT_FIELDS,
            confirmed_empty=_confirmed_empty(collection),
        )


def _tag_statement_type(item: object, statement_type: str) -> object:
    if not isinstance(item, dict):
        return item
    raw = cast("dict[str, object]", item)
    if first_present(raw, OPEN_API_STATEMENT_FIELDS.type) is not None:
        return raw
    return {**raw, "statement_type": statement_type}


def _statement_identity(item: object) -> str | None:
    if not isinstance(item, dict):
        return None
    identity = first_present(cast("dict[str, object]", item), OPEN_API_STATEMENT_FIELDS.identity)
    return None if identity is None else str(identity)


@dataclass(slots=True)
class OpenApiStatementsByTypeStrategy:
    """Statements queried once per statement type and combined into one batch.

    Some accounts only answer type-filtered queries. Each type is a slice of the
    whole, so every type is fetched and the results are joined; a failing type
    is skipped. Never reports a confirmed empty listing.
    """

    api: OpenApiClient
    statement_types: Sequence[str] = STATEMENT_TYPES
    name: str = "open-api/statements-by-type"
    max_pages: int = DEFAULT_MAX_PAGES

    async def fetch(self, context: RunContext) -> StrategyResponse:
        errors: list[PartnerAPIError] = []
        records: list[object] = []
        seen: set[str] = set()
        async with self.api.session() as client:
            for statement_type in self.statement_types:
                try:
                    collection = await _statement_pages(
                        self.api,
                        client,
                        context,
                        statement_type=statement_type,
                        max_pages=self.max_pages,
                        label=f"{self.name}[{statement_type}]",
                    )
                except PartnerAPIError as exc:
                    log.info("%s: %s failed: %s", self.name, statement_type, exc)
                    errors.append(exc)
                    continue
                for item in collection.items:
                    tagged = _tag_statement_type(item, statement_type)
                    identity = _statement_identity(tagged)
                    if identity is not None:
                        if identity in seen:
                            continue
                        seen.add(identity)
                    records.append(tagged)
                log.debug(f"{self.name}: {len(collection.items)} {statement_type} statements")

        if errors and len(errors) == len(self.statement_types):
            raise errors[0]
        return StrategyResponse(records=records, fields=OPEN_API_STATEMENT_FIELDS)


async def _query_listing(
    api: OpenApiClient,
    client: ResilientClient,
    path: str,
    context: RunContext,
    *,
    page_model: type[ListPage],
    max_pages: int,
) -> PageCollection:
    start, end = _window(context)

    async def fetch_page(_page: int, cursor: str | None) -> Page:
        query = {
            "page_size": str(OPEN_API_PAGE_SIZE),
            "start_time": str(start),
            "end_time": str(end),
        }
        if cursor is not None:
            query["page_token"] = cursor
        envelope = await api.call(client, "GET", path, query=query)
        return _as_page(page_model.model_validate(envelope.data or {}))

    return await collect_pages(fetch_page, max_pages=max_pages, label=path)


@dataclass(slots=True)
class OpenApiStatementsQueryStrategy:
    """Finance statements through the signed API, date range as query parameters."""

    api: OpenApiClient
    name: str = "open-api/statements-query"
    max_pages: int = DEFAULT_MAX_PAGES

    async def fetch(self, context: RunContext) -> StrategyResponse:
        async with self.api.session() as client:
            collection = await _query_listing(
                self.api,
                client,
                STATEMENTS_PATH,
                context,
                page_model=StatementsPage,
                max_pages=self.max_pages,
            )
        return StrategyResponse(
            records=collection.items,
            fields=OPEN_API_STATEMENT_FIELDS,
            confirmed_empty=_confirmed_empty(collection),
        )


@dataclass(slots=True)
class OpenApiPaymentsStrategy:
    """Payment-like listings; the first endpoint that returns records wins."""

    api: OpenApiClient
    paths: Sequence[str] = PAYMENT_PATHS
    name: str = "open-api/payments"
    max_pages: int = DEFAULT_MAX_PAGES

    async def fetch(self, context: RunContext) -> StrategyResponse:
        errors: list[PartnerAPIError] = []
        async with self.api.session() as client:
            for path in self.paths:
                try:
                    collection = await _query_listing(
                        self.api,
                        client,
                        path,
                        context,
                        page_model=PaymentsPage,
                        max_pages=self.max_pages,
                    )
                except PartnerAPIError as exc:
                    log.info("%s: %s", self.name, exc)
                    errors.append(exc)
                    continue
                if collection.items:
                    log.info(f"{self.name}: {len(collection.items)} records from {path}")
                    return StrategyResponse(
                        records=collection.items, fields=OPEN_API_PAYMENT_FIELDS
                    )

        if len(errors) == len(self.paths) and errors:
            # Every endpoint failed; surface the first so it can be classified.
            raise errors[0]
        return StrategyResponse(records=[], fields=OPEN_API_PAYMENT_FIELDS)


@dataclass(slots=True)
class OpenApiSettlementsStrategy:
    """Legacy settlement search, the signed source of creator payouts."""

    api: OpenApiClient
    name: str = "open-api/settlements"
    max_pages: int = DEFAULT_MAX_PAGES

    async def fetch(self, context: RunContext) -> StrategyResponse:
        start, end = _window(context)
        async with self.api.session() as client:
            async def fetch_page(_page: int, cursor: str | None) -> Page:
                body: dict[str, object] = {
                    "request_time_from": start,
                    "request_time_to": end,
                    "page_size": OPEN_API_PAGE_SIZE,
                }
                if cursor is not None:
                    body["page_token"] = cursor
                envelope = await self.api.call(client, "POST", SETTLEMENTS_PATH, body=body)
                return _as_page(SettlementsPage.model_validate(envelope.data or {}))

            collection = await collect_pages(fetch_page, max_pages=self.max_pages, label=self.name)

        return StrategyResponse(
            records=collection.items,
            fields=OPEN_API_SETTLEMENT_FIELDS,
            confirmed_empty=_confirmed_empty(collection),
        )


@dataclass(slots=True)
class OpenApiOverviewStrategy:
    """Analytics overview for the trailing analytics window."""

    api: OpenApiClient
    name: str = "open-api/data-overview"

    async def fetch(self, context: RunContext) -> StrategyResponse:
        query = {
            "start_date": context.analytics_window_start.isoformat(),
            "end_date": context.run_date.isoformat(),
        }
        async with self.api.session() as client:
            envelope = await self.api.call(client, "GET", OVERVIEW_PATH, query=query)
        records = [envelope.data] if envelope.data else []
        return StrategyResponse(records=records, fields=OPEN_API_OVERVIEW_FIELDS)


@dataclass(slots=True)
class CenterPayoutSearchStrategy:
    """Payout search of the partner center, paged by page number.

    The same endpoint serves distribution and creator payouts; ``partner_id``
    selects which.
    """

    center: PartnerCenterClient
    partner_id: str
    name: str = "partner-center/payout-search"
    max_pages: int = DEFAULT_MAX_PAGES

    async def fetch(self, context: RunContext) -> StrategyResponse:
        async with self.center.session() as client:
            async def fetch_page(page: int, _cursor: str | None) -> Page:
                envelope = await self.center.get(
                    client,
                    PAYOUT_SEARCH_PATH,
                    query={
                        "page_size": str(CENTER_PAGE_SIZE),
                        "page": str(page),
                        "partner_id": self.partner_id,
                    },
                )
                listing = PayoutSearchPage.model_validate(envelope.data or {})
                # Page-numbered: no cursor, termination relies on total_count.
                return Page(items=listing.items, total_count=listing.total_count)

            collection = await collect_pages(fetch_page, max_pages=self.max_pages, label=self.name)

        return StrategyResponse(
            records=collection.items,
            fields=CENTER_PAYOUT_FIELDS,
            confirmed_empty=_confirmed_empty(collection),
        )


@dataclass(slots=True)
class DashboardScrapeStrategy:
    """Last resort for analytics: an external scraper renders the dashboard.

    The command's stdout is either a JSON object of metrics or the rendered page
    text, from which the metrics are extracted. A failing scraper reports
    ``{"error": ...}`` on stderr.
    """

    command: Sequence[str]
    timeout_seconds: float = 120.0
    name: str = "dashboard-scrape"

    async def fetch(self, context: RunContext) -> StrategyResponse:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PartnerAPIError(f"{self.name}: cannot start scraper: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            raise PartnerAPIError(
                f"{self.name}: scraper timed out after {self.timeout_seconds}s"
            ) from None

        if process.returncode != 0:
            raise PartnerAPIError(
                f"{self.name}: {_scraper_error(stderr.decode(errors='replace'))}",
                code=process.returncode,
            )
        return StrategyResponse(
            records=_scraped_records(stdout.decode(errors="replace")),
            fields=DASHBOARD_FIELDS,
        )


def _scraper_error(stderr: str) -> str:
    for line in reversed(stderr.strip().splitlines()):
        try:
            payload = json.loads(line)
        except ValueError:
            continue
        if isinstance(payload, dict) and "error" in payload:
            return str(payload["error"])
    return stderr.strip()[-300:] or "scraper failed"


def _scraped_records(stdout: str) -> list[object]:
    text = stdout.strip()
    if text.startswith("{"):
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            return [payload]
    metrics = extract_dashboard_metrics(text)
    return [metrics] if metrics is not None else []
