"""Canonical records persisted in the agency dataset."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Protocol

ZERO = Decimal(0)

ANALYTICS_METRICS = ("affiliate_gmv", "est_commission", "orders", "gmv_refund")


class Category(StrEnum):
    """Record categories; values double as the keys of the persisted file."""

    ANALYTICS = "analytics"
    CREATOR_PAYOUTS = "payouts"
    DISTRIBUTION_PAYOUTS = "distribution_payouts"


def _key_amount(value: Decimal) -> str:
    # 150, 150.0 and 150.00 must collide on the composite key.
    return format(value.normalize(), "f")


class DatedRecord(Protocol):
    """Shape required by the merge engine."""

    @property
    def date(self) -> str: ...

    @property
    def identity_key(self) -> str: ...


@dataclass(frozen=True, slots=True)
class DistributionPayoutRecord:
    statement_id: str
    date: str
    settlement_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO
    type: str = "unknown"
    currency: str = "USD"

    @property
    def identity_key(self) -> str:
        if self.statement_id:
            return self.statement_id
        return f"{self.date}-{_key_amount(self.amount_paid)}-{self.type}"


@dataclass(frozen=True, slots=True)
class CreatorPayoutRecord:
    payment_id: str
    date: str
    settlement_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO

    @property
    def identity_key(self) -> str:
        if self.payment_id:
            return self.payment_id
        return f"{self.date}-{_key_amount(self.amount_paid)}"


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    """Rolling partner analytics; every reported metric is replaced on a successful fetch."""

    affiliate_gmv: Decimal = ZERO
    est_commission: Decimal = ZERO
    orders: int = 0
    gmv_refund: Decimal = ZERO
    last_updated: str = ""
    # Metrics the source actually carried; the rest keep their persisted values.
    reported: frozenset[str] = field(
        default=frozenset(ANALYTICS_METRICS), compare=False, repr=False
    )


@dataclass(slots=True)
class PersistedState:
    analytics: AnalyticsSnapshot = field(default_factory=AnalyticsSnapshot)
    payouts: list[CreatorPayoutRecord] = field(default_factory=list["CreatorPayoutRecord"])
    distribution_payouts: list[DistributionPayoutRecord] = field(
        default_factory=list["DistributionPayoutRecord"]
    )

    @classmethod
    def empty(cls) -> PersistedState:
        return cls()


__all__ = [
    "ANALYTICS_METRICS",
    "ZERO",
    "AnalyticsSnapshot",
    "Category",
    "CreatorPayoutRecord",
    "DatedRecord",
    "DistributionPayoutRecord",
    "PersistedState",
]
