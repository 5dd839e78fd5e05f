"""The agency dataset as a single pretty-printed JSON file.

The file is read once at the start of a run and replaced atomically at the end.
Its layout is consumed by the reporting view, so key order and number
formatting are fixed here.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from decimal import Decimal
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from payoutsync.domain.errors import StateFileError
from payoutsync.domain.model import (
    ZERO,
    AnalyticsSnapshot,
    CreatorPayoutRecord,
    DistributionPayoutRecord,
    PersistedState,
)

if TYPE_CHECKING:
    from payoutsync.domain.reconcile import StateStore

log = getLogger(__name__)


def _none_to_zero(value: object) -> object:
    return ZERO if value is None or value == "" else value


def _none_to_blank(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, int | Decimal):
        return str(value)
    return value


class _StoredModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class StoredAnalytics(_StoredModel):
    affiliate_gmv: Decimal = ZERO
    est_commission: Decimal = ZERO
    orders: int = 0
    gmv_refund: Decimal = ZERO
    last_updated: str = ""

    _zero_amounts = field_validator(
        "affiliate_gmv", "est_commission", "gmv_refund", "orders", mode="before"
    )(_none_to_zero)
    _blank_text = field_validator("last_updated", mode="before")(_none_to_blank)


class StoredCreatorPayout(_StoredModel):
    payment_id: str = ""
    date: str = ""
    settlement_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO

    _zero_amounts = field_validator("settlement_amount", "amount_paid", mode="before")(
        _none_to_zero
    )
    _blank_text = field_validator("payment_id", "date", mode="before")(_none_to_blank)


class StoredDistributionPayout(_StoredModel):
    statement_id: str = ""
    date: str = ""
    settlement_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO
    type: str = "unknown"
    currency: str = "USD"

    _zero_amounts = field_validator("settlement_amount", "amount_paid", mode="before")(
        _none_to_zero
    )
    _blank_text = field_validator("statement_id", "date", mode="before")(_none_to_blank)


class StoredState(_StoredModel):
    analytics: StoredAnalytics = Field(default_factory=StoredAnalytics)
    payouts: list[StoredCreatorPayout] = Field(default_factory=list)
    distribution_payouts: list[StoredDistributionPayout] = Field(default_factory=list)

    def to_domain(self) -> PersistedState:
        return PersistedState(
            analytics=AnalyticsSnapshot(**self.analytics.model_dump()),
            payouts=[CreatorPayoutRecord(**item.model_dump()) for item in self.payouts],
            distribution_payouts=[
                DistributionPayoutRecord(**item.model_dump()) for item in self.distribution_payouts
            ],
        )


def _number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def serialize_state(state: PersistedState) -> dict[str, Any]:
    """Plain JSON-ready mapping with the canonical key order."""

    analytics = state.analytics
    return {
        "analytics": {
            "last_updated": analytics.last_updated,
            "affiliate_gmv": _number(analytics.affiliate_gmv),
            "est_commission": _number(analytics.est_commission),
            "orders": analytics.orders,
            "gmv_refund": _number(analytics.gmv_refund),
        },
        "payouts": [
            {
                "payment_id": record.payment_id,
                "date": record.date,
                "settlement_amount": _number(record.settlement_amount),
                "amount_paid": _number(record.amount_paid),
            }
            for record in state.payouts
        ],
        "distribution_payouts": [
            {
                "statement_id": record.statement_id,
                "date": record.date,
                "settlement_amount": _number(record.settlement_amount),
                "amount_paid": _number(record.amount_paid),
                "type": record.type,
                "currency": record.currency,
            }
            for record in state.distribution_payouts
        ],
    }


def render_state(state: PersistedState) -> str:
    return json.dumps(serialize_state(state), indent=2) + "\n"


def parse_state(text: str, *, source: str = "<state>") -> PersistedState:
    try:
        payload = json.loads(text, parse_float=Decimal)
    except ValueError as exc:
        raise StateFileError(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise StateFileError(f"{source} must contain a JSON object")
    try:
        stored = StoredState.model_validate(payload)
    except ValidationError as exc:
        raise StateFileError(f"{source} does not match the dataset layout: {exc}") from exc
    return stored.to_domain()


@dataclass(slots=True)
class JsonStateStore:
    path: Path

    def load(self) -> PersistedState:
        """Read the dataset, or start from the empty layout if the file does not exist."""

        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log.info("No dataset at %s, starting from an empty one", self.path)
            return PersistedState.empty()
        except OSError as exc:
            raise StateFileError(f"Cannot read {self.path}: {exc}") from exc

        state = parse_state(text, source=str(self.path))
        log.info(
            f"Loaded {self.path}: {len(state.payouts)} creator payouts, "
            f"{len(state.distribution_payouts)} distribution payouts"
        )
        return state

    def save(self, state: PersistedState) -> None:
        content = render_state(state)
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            tmp_path.replace(self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        log.info("Wrote %s", self.path)


if TYPE_CHECKING:

    def _check_store(store: JsonStateStore) -> StateStore:
        return store
