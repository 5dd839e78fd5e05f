"""Ports for fetching partner records through interchangeable strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .errors import AuthExpired

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .errors import TransientNetworkError
    from .model import Category
    from .normalization import FieldTable

DEFAULT_LOOKBACK_DAYS = 90
DEFAULT_ANALYTICS_WINDOW_DAYS = 28


class FetchStatus(StrEnum):
    """How a category's strategy chain ended."""

    RECORDS = "records"
    CONFIRMED_EMPTY = "confirmed_empty"
    NO_DATA = "no_data"


@dataclass(frozen=True, slots=True)
class RunContext:
    """Per-run values threaded through every strategy call."""

    run_date: date
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    analytics_window_days: int = DEFAULT_ANALYTICS_WINDOW_DAYS

    @property
    def window_start(self) -> date:
        return self.run_date - timedelta(days=self.lookback_days)

    @property
    def analytics_window_start(self) -> date:
        return self.run_date - timedelta(days=self.analytics_window_days)


@dataclass(frozen=True, slots=True)
class StrategyResponse:
    """Raw output of one strategy together with the field table describing it.

    ``confirmed_empty`` is only set when the source explicitly reported zero
    records; an empty ``records`` without it means "nothing usable".
    """

    records: Sequence[object]
    fields: FieldTable
    confirmed_empty: bool = False


@runtime_checkable
class FetchStrategy(Protocol):
    """One concrete way of obtaining the raw records of a category."""

    name: str

    async def fetch(self, context: RunContext) -> StrategyResponse: ...


@dataclass(frozen=True, slots=True)
class StrategyFailure:
    strategy: str
    error: TransientNetworkError


@dataclass(slots=True)
class CategoryFetchResult[TRecord]:
    """Outcome of running one category's strategy chain."""

    category: Category
    status: FetchStatus
    records: list[TRecord] = field(default_factory=list)
    strategy: str | None = None
    unparseable: int = 0
    failures: list[StrategyFailure] = field(default_factory=list["StrategyFailure"])

    @property
    def auth_failures(self) -> list[StrategyFailure]:
        return [failure for failure in self.failures if isinstance(failure.error, AuthExpired)]

    @property
    def auth_expired(self) -> bool:
        """True when the chain was exhausted and a credential rejection was among the causes."""

        return self.status is FetchStatus.NO_DATA and bool(self.auth_failures)


__all__ = [
    "DEFAULT_ANALYTICS_WINDOW_DAYS",
    "DEFAULT_LOOKBACK_DAYS",
    "CategoryFetchResult",
    "FetchStatus",
    "FetchStrategy",
    "RunContext",
    "StrategyFailure",
    "StrategyResponse",
]
