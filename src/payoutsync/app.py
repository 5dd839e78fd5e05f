"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from payoutsync.adapters.github_issues import GitHubIssueSink
from payoutsync.adapters.json_store import JsonStateStore
from payoutsync.adapters.partner import (
    CenterPayoutSearchStrategy,
    DashboardScrapeStrategy,
    OpenApiClient,
    OpenApiOverviewStrategy,
    OpenApiPaymentsStrategy,
    OpenApiSettlementsStrategy,
    OpenApiStatementsByTypeStrategy,
    OpenApiStatementsQueryStrategy,
    OpenApiStatementsStrategy,
    PartnerCenterClient,
)
from payoutsync.config import (
    ConfigurationError,
    get_github_alert_config,
    get_partner_config,
    get_storage_config,
)
from payoutsync.domain.alerts import AlertDispatcher
from payoutsync.domain.fetching import DEFAULT_LOOKBACK_DAYS, RunContext
from payoutsync.domain.model import ZERO, Category
from payoutsync.domain.normalization import (
    normalize_analytics,
    normalize_creator_payouts,
    normalize_distribution_payouts,
)
from payoutsync.domain.reconcile import CategoryChains, run_reconciliation
from payoutsync.domain.strategy_chain import StrategyChain

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date
    from decimal import Decimal
    from pathlib import Path

    from payoutsync.adapters.http_resilience import ResilientClient
    from payoutsync.config import GitHubAlertConfig, PartnerConfig, ResilienceConfig
    from payoutsync.domain.fetching import FetchStrategy
    from payoutsync.domain.reconcile import ReconciliationSummary, StateStore

    ClientFactory = Callable[[ResilienceConfig], ResilientClient]

log = getLogger(__name__)


def _today() -> date:
    return datetime.now(UTC).date()


def build_chains(
    config: PartnerConfig, *, client_factory: ClientFactory | None = None
) -> CategoryChains:
    """Assemble the ordered strategies each category can use with the configured credentials."""

    distribution: list[FetchStrategy] = []
    creator: list[FetchStrategy] = []
    analytics: list[FetchStrategy] = []

    if config.open_api is not None:
        api = OpenApiClient.from_config(config, client_factory=client_factory)
        distribution.append(OpenApiStatementsStrategy(api))
        distribution.append(OpenApiStatementsByTypeStrategy(api))
        distribution.append(OpenApiStatementsQueryStrategy(api))
        distribution.append(OpenApiPaymentsStrategy(api))
        creator.append(OpenApiSettlementsStrategy(api))
        analytics.append(OpenApiOverviewStrategy(api))

    if config.session_cookie is not None:
        center = PartnerCenterClient.from_config(config, client_factory=client_factory)
        if config.distribution_partner_id:
            distribution.append(
                CenterPayoutSearchStrategy(
                    center,
                    partner_id=config.distribution_partner_id,
                    name="partner-center/distribution-payouts",
                )
            )
        if config.creator_partner_id:
            creator.append(
                CenterPayoutSearchStrategy(
                    center,
                    partner_id=config.creator_partner_id,
                    name="partner-center/creator-payouts",
                )
            )

    if config.dashboard_command:
        analytics.append(
            DashboardScrapeStrategy(
                config.dashboard_command, timeout_seconds=config.dashboard_timeout_seconds
            )
        )

    codes = config.auth_error_codes
    return CategoryChains(
        distribution_payouts=StrategyChain(
            Category.DISTRIBUTION_PAYOUTS, distribution, normalize_distribution_payouts, codes
        ),
        creator_payouts=StrategyChain(
            Category.CREATOR_PAYOUTS, creator, normalize_creator_payouts, codes
        ),
        analytics=StrategyChain(Category.ANALYTICS, analytics, normalize_analytics, codes),
    )


def _load_alert_config() -> GitHubAlertConfig | None:
    try:
        return get_github_alert_config()
    except ConfigurationError as exc:
        log.warning(f"Alerting disabled, GitHub settings are incomplete: {exc}")
        return None


def build_alert_dispatcher(
    config: GitHubAlertConfig | None, *, client_factory: ClientFactory | None = None
) -> AlertDispatcher:
    if config is None:
        return AlertDispatcher(sink=None)
    sink = (
        GitHubIssueSink(config, client_factory=client_factory)
        if client_factory is not None
        else GitHubIssueSink(config)
    )
    return AlertDispatcher(sink=sink)


def sync_partner_data(
    *,
    run_date: date | None = None,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    data_file: Path | None = None,
    partner_config: PartnerConfig | None = None,
    alert_config: GitHubAlertConfig | None = None,
    chains: CategoryChains | None = None,
    store: StateStore | None = None,
    client_factory: ClientFactory | None = None,
) -> ReconciliationSummary | None:
    """Run one reconciliation against the partner platform.

    Returns ``None`` without touching the dataset when no partner credential is
    configured.
    """

    effective_config = partner_config or get_partner_config()
    if chains is None and not effective_config.has_credentials:
        log.warning("No partner credentials configured; keeping the existing dataset unchanged")
        return None

    effective_store = store or JsonStateStore(
        get_storage_config(data_file=data_file).resolve_data_file()
    )
    effective_chains = chains or build_chains(effective_config, client_factory=client_factory)
    dispatcher = build_alert_dispatcher(
        alert_config if alert_config is not None else _load_alert_config(),
        client_factory=client_factory,
    )
    context = RunContext(run_date=run_date or _today(), lookback_days=lookback_days)

    log.info(
        "Starting partner sync: run_date=%s, lookback_days=%s",
        context.run_date,
        context.lookback_days,
    )
    summary = asyncio.run(
        run_reconciliation(
            context=context,
            chains=effective_chains,
            store=effective_store,
            dispatcher=dispatcher,
        )
    )
    for category, report in summary.categories.items():
        log.info(
            f"{category}: status={report.status}, strategy={report.strategy}, "
            f"fetched={report.fetched}, unparseable={report.unparseable}, "
            f"persisted={report.persisted}"
        )
    return summary


@dataclass(frozen=True, slots=True)
class DatasetSummary:
    creator_payouts: int
    distribution_payouts: int
    latest_payout_date: str | None
    creator_paid_total: Decimal
    distribution_paid_total: Decimal
    analytics_last_updated: str


def summarize_dataset(*, data_file: Path | None = None) -> DatasetSummary:
    """Read the persisted dataset and report counts, latest date and totals."""

    state = JsonStateStore(get_storage_config(data_file=data_file).resolve_data_file()).load()
    dates = [record.date for record in (*state.payouts, *state.distribution_payouts) if record.date]
    return DatasetSummary(
        creator_payouts=len(state.payouts),
        distribution_payouts=len(state.distribution_payouts),
        latest_payout_date=max(dates) if dates else None,
        creator_paid_total=sum((record.amount_paid for record in state.payouts), ZERO),
        distribution_paid_total=sum(
            (record.amount_paid for record in state.distribution_payouts), ZERO
        ),
        analytics_last_updated=state.analytics.last_updated,
    )
