"""One reconciliation run: fetch every category, merge, guard, alert, write once."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from .alerts import render_auth_alert_body
from .errors import TransientNetworkError
from .fetching import CategoryFetchResult, FetchStatus, StrategyFailure
from .merge import reconcile_collection
from .model import ANALYTICS_METRICS, Category

if TYPE_CHECKING:
    from .alerts import AlertDispatcher, AlertOutcome
    from .fetching import RunContext
    from .model import (
        AnalyticsSnapshot,
        CreatorPayoutRecord,
        DistributionPayoutRecord,
        PersistedState,
    )
    from .strategy_chain import StrategyChain

log = getLogger(__name__)


class StateStore(Protocol):
    """Durable home of the dataset. ``save`` is called exactly once per run."""

    def load(self) -> PersistedState: ...

    def save(self, state: PersistedState) -> None: ...


@dataclass(slots=True)
class CategoryChains:
    distribution_payouts: StrategyChain[DistributionPayoutRecord]
    creator_payouts: StrategyChain[CreatorPayoutRecord]
    analytics: StrategyChain[AnalyticsSnapshot]


@dataclass(slots=True)
class CategoryReport:
    status: FetchStatus
    strategy: str | None
    fetched: int
    unparseable: int
    persisted: int
    auth_expired: bool


@dataclass(slots=True)
class ReconciliationSummary:
    """Outcome of a run, for logging and tests."""

    run_date: str
    categories: dict[Category, CategoryReport] = field(
        default_factory=dict["Category", "CategoryReport"]
    )
    alert: AlertOutcome | None = None

    @property
    def auth_expired(self) -> bool:
        return any(report.auth_expired for report in self.categories.values())


async def _run_chain[TRecord](
    chain: StrategyChain[TRecord], context: RunContext
) -> CategoryFetchResult[TRecord]:
    try:
        return await chain.run(context)
    except Exception as exc:
        log.exception("%s: strategy chain crashed", chain.category)
        return CategoryFetchResult(
            category=chain.category,
            status=FetchStatus.NO_DATA,
            failures=[
                StrategyFailure(
                    strategy="chain",
                    error=TransientNetworkError(f"{type(exc).__name__}: {exc}"),
                )
            ],
        )


def apply_analytics(
    existing: AnalyticsSnapshot,
    result: CategoryFetchResult[AnalyticsSnapshot],
    *,
    run_date: str,
) -> AnalyticsSnapshot:
    """Replace the reported metrics on success; ``last_updated`` always advances to the run date."""

    if result.status is FetchStatus.RECORDS and result.records:
        fresh = result.records[0]
        kept = {
            name: getattr(existing, name)
            for name in ANALYTICS_METRICS
            if name not in fresh.reported
        }
        if kept:
            log.info("analytics: keeping persisted %s", ", ".join(kept))
        return replace(fresh, last_updated=run_date, reported=frozenset(ANALYTICS_METRICS), **kept)
    log.info("analytics: no new snapshot, keeping existing metrics")
    return replace(existing, last_updated=run_date)


def _report(result: CategoryFetchResult[object], persisted: int) -> CategoryReport:
    return CategoryReport(
        status=result.status,
        strategy=result.strategy,
        fetched=len(result.records),
        unparseable=result.unparseable,
        persisted=persisted,
        auth_expired=result.auth_expired,
    )


async def run_reconciliation(
    *,
    context: RunContext,
    chains: CategoryChains,
    store: StateStore,
    dispatcher: AlertDispatcher,
) -> ReconciliationSummary:
    """Run every category chain concurrently and persist the merged state once.

    A state file that cannot be loaded raises before any fetch, leaving the file
    untouched. Everything after loading is handled locally.
    """

    state = store.load()
    run_date = context.run_date.isoformat()

    distribution, creator, analytics = await asyncio.gather(
        _run_chain(chains.distribution_payouts, context),
        _run_chain(chains.creator_payouts, context),
        _run_chain(chains.analytics, context),
    )

    state.distribution_payouts = reconcile_collection(
        state.distribution_payouts,
        distribution.records,
        distribution.status,
        label=Category.DISTRIBUTION_PAYOUTS,
    )
    state.payouts = reconcile_collection(
        state.payouts,
        creator.records,
        creator.status,
        label=Category.CREATOR_PAYOUTS,
    )
    state.analytics = apply_analytics(state.analytics, analytics, run_date=run_date)

    summary = ReconciliationSummary(run_date=run_date)
    summary.categories[Category.DISTRIBUTION_PAYOUTS] = _report(
        distribution, len(state.distribution_payouts)
    )
    summary.categories[Category.CREATOR_PAYOUTS] = _report(creator, len(state.payouts))
    summary.categories[Category.ANALYTICS] = _report(analytics, 1)

    expired = {
        str(result.category): result.auth_failures
        for result in (distribution, creator, analytics)
        if result.auth_expired
    }
    if expired:
        log.warning("Credential rejected for: %s", ", ".join(expired))
        summary.alert = await dispatcher.dispatch(
            render_auth_alert_body(expired, run_date=context.run_date)
        )

    store.save(state)
    log.info(
        f"Reconciled {run_date}: {len(state.payouts)} creator payouts, "
        f"{len(state.distribution_payouts)} distribution payouts"
    )
    return summary
