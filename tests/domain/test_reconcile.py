from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from payoutsync.domain.alerts import AlertDispatcher, AlertOutcome
from payoutsync.domain.errors import StateFileError, TransientNetworkError
from payoutsync.domain.fetching import FetchStatus, StrategyResponse
from payoutsync.domain.model import (
    AnalyticsSnapshot,
    Category,
    CreatorPayoutRecord,
    DistributionPayoutRecord,
    PersistedState,
)
from payoutsync.domain.normalization import (
    CENTER_PAYOUT_FIELDS,
    OPEN_API_OVERVIEW_FIELDS,
    normalize_analytics,
    normalize_creator_payouts,
    normalize_distribution_payouts,
)
from payoutsync.domain.reconcile import CategoryChains, run_reconciliation
from payoutsync.domain.strategy_chain import StrategyChain
from tests.helpers.partner import (
    RUN_CONTEXT,
    FakeStrategy,
    InMemoryStateStore,
    RecordingAlertSink,
)

AUTH_CODES = frozenset({401, 403})


def _existing_state() -> PersistedState:
    return PersistedState(
        analytics=AnalyticsSnapshot(
            affiliate_gmv=Decimal("486223.22"),
            est_commission=Decimal("41184.76"),
            orders=23077,
            gmv_refund=Decimal("13266.62"),
            last_updated="2025-03-01",
        ),
        payouts=[CreatorPayoutRecord(payment_id="C-1", date="2025-02-28", amount_paid=Decimal(40))],
        distribution_payouts=[
            DistributionPayoutRecord(statement_id="D-1", date="2025-02-20", amount_paid=Decimal(90))
        ],
    )


def _chains(
    distribution: list[FakeStrategy],
    creator: list[FakeStrategy],
    analytics: list[FakeStrategy],
) -> CategoryChains:
    return CategoryChains(
        distribution_payouts=StrategyChain(
            Category.DISTRIBUTION_PAYOUTS, distribution, normalize_distribution_payouts, AUTH_CODES
        ),
        creator_payouts=StrategyChain(
            Category.CREATOR_PAYOUTS, creator, normalize_creator_payouts, AUTH_CODES
        ),
        analytics=StrategyChain(Category.ANALYTICS, analytics, normalize_analytics, AUTH_CODES),
    )


def _payouts(*records: dict[str, object]) -> FakeStrategy:
    return FakeStrategy("session", response=StrategyResponse(list(records), CENTER_PAYOUT_FIELDS))


def _expired(name: str = "session") -> FakeStrategy:
    return FakeStrategy(name, error=TransientNetworkError("HTTP 401", status_code=401))


def test_run_merges_every_category_and_writes_once() -> None:
    store = InMemoryStateStore(state=_existing_state())
    sink = RecordingAlertSink()
    chains = _chains(
        distribution=[
            _payouts({"id": "D-2", "payment_time": 1741910400000, "payment_amount": "12.5"})
        ],
        creator=[_payouts({"id": "C-1", "payment_time": 1740700800000, "payment_amount": "41"})],
        analytics=[
            FakeStrategy(
                "overview",
                response=StrategyResponse(
                    [{"gmv": "500000", "commission": "42000", "orders": 24000, "refund_gmv": 0}],
                    OPEN_API_OVERVIEW_FIELDS,
                ),
            )
        ],
    )

    summary = asyncio.run(
        run_reconciliation(
            context=RUN_CONTEXT,
            chains=chains,
            store=store,
            dispatcher=AlertDispatcher(sink=sink),
        )
    )

    (saved,) = store.saved
    assert [r.statement_id for r in saved.distribution_payouts] == ["D-2", "D-1"]
    assert saved.payouts == [
        CreatorPayoutRecord(
            payment_id="C-1",
            date="2025-02-28",
            settlement_amount=Decimal(0),
            amount_paid=Decimal("41"),
        )
    ]
    assert saved.analytics.orders == 24000
    assert saved.analytics.last_updated == "2025-03-14"
    assert summary.alert is None
    assert not summary.auth_expired
    assert sink.created == []


def test_failed_fetch_keeps_existing_records_and_advances_analytics_date() -> None:
    store = InMemoryStateStore(state=_existing_state())
    chains = _chains(
        distribution=[FakeStrategy("signed", error=TransientNetworkError("HTTP 502"))],
        creator=[FakeStrategy("signed", response=StrategyResponse([], CENTER_PAYOUT_FIELDS))],
        analytics=[],
    )

    summary = asyncio.run(
        run_reconciliation(
            context=RUN_CONTEXT,
            chains=chains,
            store=store,
            dispatcher=AlertDispatcher(sink=None),
        )
    )

    (saved,) = store.saved
    existing = _existing_state()
    assert saved.distribution_payouts == existing.distribution_payouts
    assert saved.payouts == existing.payouts
    assert saved.analytics.orders == existing.analytics.orders
    assert saved.analytics.last_updated == "2025-03-14"
    assert summary.categories[Category.DISTRIBUTION_PAYOUTS].status is FetchStatus.NO_DATA


def test_auth_expiry_on_several_categories_files_one_alert_per_open_window() -> None:
    sink = RecordingAlertSink()

    def run() -> AlertOutcome | None:
        store = InMemoryStateStore(state=_existing_state())
        chains = _chains(
            distribution=[_expired()],
            creator=[_expired()],
            analytics=[_expired("overview")],
        )
        summary = asyncio.run(
            run_reconciliation(
                context=RUN_CONTEXT,
                chains=chains,
                store=store,
                dispatcher=AlertDispatcher(sink=sink),
            )
        )
        assert summary.auth_expired
        assert store.saved[0].distribution_payouts == _existing_state().distribution_payouts
        return summary.alert

    assert run() is AlertOutcome.CREATED
    assert run() is AlertOutcome.ALREADY_OPEN
    assert len(sink.created) == 1
    title, body, _labels = sink.created[0]
    assert title == "Partner credential expired"
    assert "`payouts`" in body
    assert "`distribution_payouts`" in body


def test_unreadable_state_aborts_before_fetching_or_writing() -> None:
    store = InMemoryStateStore(load_error=StateFileError("broken"))
    strategy = _payouts({"id": "D-2", "payment_time": 1741910400000})

    with pytest.raises(StateFileError):
        asyncio.run(
            run_reconciliation(
                context=RUN_CONTEXT,
                chains=_chains([strategy], [], []),
                store=store,
                dispatcher=AlertDispatcher(sink=None),
            )
        )

    assert strategy.calls == 0
    assert store.saved == []


def test_confirmed_empty_clears_collection() -> None:
    store = InMemoryStateStore(state=_existing_state())
    confirmed = FakeStrategy(
        "session", response=StrategyResponse([], CENTER_PAYOUT_FIELDS, confirmed_empty=True)
    )

    asyncio.run(
        run_reconciliation(
            context=RUN_CONTEXT,
            chains=_chains([confirmed], [], []),
            store=store,
            dispatcher=AlertDispatcher(sink=None),
        )
    )

    assert store.saved[0].distribution_payouts == []


def test_partial_analytics_keeps_metrics_the_source_left_out() -> None:
    store = InMemoryStateStore(state=_existing_state())
    overview = FakeStrategy(
        "overview",
        response=StrategyResponse([{"orders": 24000, "gmv": "500000"}], OPEN_API_OVERVIEW_FIELDS),
    )

    asyncio.run(
        run_reconciliation(
            context=RUN_CONTEXT,
            chains=_chains([], [], [overview]),
            store=store,
            dispatcher=AlertDispatcher(sink=None),
        )
    )

    analytics = store.saved[0].analytics
    assert analytics.orders == 24000
    assert analytics.affiliate_gmv == Decimal(500000)
    assert analytics.est_commission == Decimal("41184.76")
    assert analytics.gmv_refund == Decimal("13266.62")
    assert analytics.last_updated == "2025-03-14"
