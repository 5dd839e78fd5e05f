"""Map heterogeneous partner payloads onto the canonical record types.

Each API surface (and each version of it) names the same values differently.
Rather than guessing inline, every source declares a field table listing the
candidate names for each canonical field in priority order. The first candidate
that is present and not blank wins.

Coercion rules:

* timestamps are epoch seconds or epoch milliseconds (numbers or numeric
  strings) or an already normalized ``YYYY-MM-DD``; they are truncated to a UTC
  calendar date
* monetary values that fail to parse become ``0`` (never NaN), negative values
  are clamped to ``0``
* a raw record without identity key and without date is dropped and counted
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from logging import getLogger
from typing import TYPE_CHECKING, cast

from .errors import UnparseableRecord
from .model import ZERO, AnalyticsSnapshot, CreatorPayoutRecord, DistributionPayoutRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

log = getLogger(__name__)

type RawRecord = Mapping[str, object]

# Epoch values at or above this are milliseconds (year 5138 in seconds).
_EPOCH_MILLIS_THRESHOLD = 100_000_000_000
_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


@dataclass(frozen=True, slots=True)
class PayoutFields:
    """Candidate source field names for a payout-like record, in priority order."""

    source: str
    identity: tuple[str, ...]
    date: tuple[str, ...]
    settlement_amount: tuple[str, ...]
    amount_paid: tuple[str, ...]
    type: tuple[str, ...] = ()
    currency: tuple[str, ...] = ("currency",)
    default_type: str = "unknown"
    default_currency: str = "USD"


@dataclass(frozen=True, slots=True)
class AnalyticsFields:
    source: str
    affiliate_gmv: tuple[str, ...] = ("gmv", "affiliate_gmv")
    est_commission: tuple[str, ...] = ("commission", "est_commission")
    orders: tuple[str, ...] = ("orders", "order_count")
    gmv_refund: tuple[str, ...] = ("refund_gmv", "gmv_refund")


type FieldTable = PayoutFields | AnalyticsFields


OPEN_API_STATEMENT_FIELDS = PayoutFields(
    source="open-api/statements",
    identity=("id", "statement_id"),
    date=("statement_time", "settle_time"),
    settlement_amount=("settlement_amount", "revenue_amount", "amount"),
    amount_paid=("payout_amount", "paid_amount", "settlement_amount", "amount"),
    type=("statement_type", "type"),
)

OPEN_API_PAYMENT_FIELDS = PayoutFields(
    source="open-api/payments",
    identity=("id", "payment_id", "payout_id"),
    date=("payment_time", "create_time"),
    settlement_amount=("amount", "payout_amount", "payment_amount"),
    amount_paid=("amount", "payout_amount", "payment_amount"),
    type=("type", "payment_type"),
    default_type="distribution",
)

OPEN_API_SETTLEMENT_FIELDS = PayoutFields(
    source="open-api/settlements",
    identity=("id", "settlement_id"),
    date=("settle_time",),
    settlement_amount=("settlement_amount", "revenue"),
    amount_paid=("payout_amount", "settlement_amount"),
)

CENTER_PAYOUT_FIELDS = PayoutFields(
    source="partner-center/payout-search",
    identity=("id", "payout_id"),
    date=("payment_time", "create_time"),
    settlement_amount=("amount", "settlement_amount"),
    amount_paid=("payment_amount", "amount"),
    default_type="PRODUCT_DISTRIBUTION",
)

OPEN_API_OVERVIEW_FIELDS = AnalyticsFields(source="open-api/data-overview")

DASHBOARD_FIELDS = AnalyticsFields(
    source="dashboard",
    affiliate_gmv=("affiliate_gmv",),
    est_commission=("est_commission",),
    orders=("orders",),
    gmv_refund=("gmv_refund",),
)


@dataclass(slots=True)
class NormalizationResult[TRecord]:
    records: list[TRecord] = field(default_factory=list)
    dropped: list[UnparseableRecord] = field(default_factory=list["UnparseableRecord"])

    @property
    def unparseable(self) -> int:
        return len(self.dropped)


type Normalizer[TRecord] = Callable[[Sequence[object], FieldTable], NormalizationResult[TRecord]]


def first_present(raw: RawRecord, candidates: Sequence[str]) -> object | None:
    """Return the first candidate value that is present, non-null and not blank."""

    for name in candidates:
        value = raw.get(name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def to_iso_date(value: object) -> str | None:
    """Truncate an epoch (seconds or milliseconds) or ISO value to ``YYYY-MM-DD`` in UTC."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if _ISO_DATE_PREFIX.match(text):
            try:
                return date.fromisoformat(text[:10]).isoformat()
            except ValueError:
                return None
        if not _NUMERIC.match(text):
            return None
        value = Decimal(text)
    if not isinstance(value, int | float | Decimal):
        return None

    epoch = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    if not epoch.is_finite() or epoch <= 0:
        return None
    if epoch >= _EPOCH_MILLIS_THRESHOLD:
        epoch = epoch / 1000
    try:
        return datetime.fromtimestamp(int(epoch), tz=UTC).date().isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def to_amount(value: object, *, field_name: str = "amount") -> Decimal:
    """Coerce a raw monetary value to a non-negative ``Decimal``."""

    if isinstance(value, Mapping):
        nested = cast(Mapping[str, object], value)
        return to_amount(first_present(nested, ("amount", "value")), field_name=field_name)
    if value is None or isinstance(value, bool):
        return ZERO

    try:
        if isinstance(value, str):
            amount = Decimal(value.strip().replace(",", "").replace("$", ""))
        elif isinstance(value, float):
            amount = Decimal(str(value))
        elif isinstance(value, int | Decimal):
            amount = Decimal(value)
        else:
            raise InvalidOperation(type(value).__name__)
    except InvalidOperation:
        log.warning("Unparseable %s %r coerced to 0", field_name, value)
        return ZERO

    if not amount.is_finite():
        log.warning("Non-finite %s %r coerced to 0", field_name, value)
        return ZERO
    if amount < 0:
        log.warning("Negative %s %s clamped to 0", field_name, amount)
        return ZERO
    return amount


def to_count(value: object, *, field_name: str = "count") -> int:
    return int(to_amount(value, field_name=field_name))


def _text(value: object | None, default: str) -> str:
    if value is None:
        return default
    return str(value).strip() or default


def _as_mapping(raw: object) -> RawRecord | None:
    if isinstance(raw, Mapping):
        return cast(RawRecord, raw)
    return None


def _payout_fields(fields: FieldTable) -> PayoutFields:
    if not isinstance(fields, PayoutFields):
        raise TypeError(f"Expected payout field table, got {fields.source}")
    return fields


def _identity_and_date(raw: RawRecord, fields: PayoutFields) -> tuple[str, str]:
    identity = _text(first_present(raw, fields.identity), "")
    iso_date = to_iso_date(first_present(raw, fields.date)) or ""
    if not identity and not iso_date:
        raise UnparseableRecord(f"{fields.source}: no identity key and no date", raw=raw)
    return identity, iso_date


def _normalize_payouts[TRecord](
    raws: Sequence[object],
    fields: PayoutFields,
    build: Callable[[RawRecord, str, str], TRecord],
) -> NormalizationResult[TRecord]:
    result: NormalizationResult[TRecord] = NormalizationResult()
    for raw in raws:
        mapping = _as_mapping(raw)
        try:
            if mapping is None:
                raise UnparseableRecord(f"{fields.source}: record is not an object", raw=raw)
            identity, iso_date = _identity_and_date(mapping, fields)
        except UnparseableRecord as exc:
            log.warning("Dropping record: %s", exc.reason)
            result.dropped.append(exc)
            continue
        result.records.append(build(mapping, identity, iso_date))
    return result


def normalize_distribution_payouts(
    raws: Sequence[object], fields: FieldTable
) -> NormalizationResult[DistributionPayoutRecord]:
    table = _payout_fields(fields)

    def build(raw: RawRecord, identity: str, iso_date: str) -> DistributionPayoutRecord:
        return DistributionPayoutRecord(
            statement_id=identity,
            date=iso_date,
            settlement_amount=to_amount(
                first_present(raw, table.settlement_amount), field_name="settlement_amount"
            ),
            amount_paid=to_amount(first_present(raw, table.amount_paid), field_name="amount_paid"),
            type=_text(first_present(raw, table.type), table.default_type),
            currency=_text(first_present(raw, table.currency), table.default_currency),
        )

    return _normalize_payouts(raws, table, build)


def normalize_creator_payouts(
    raws: Sequence[object], fields: FieldTable
) -> NormalizationResult[CreatorPayoutRecord]:
    table = _payout_fields(fields)

    def build(raw: RawRecord, identity: str, iso_date: str) -> CreatorPayoutRecord:
        return CreatorPayoutRecord(
            payment_id=identity,
            date=iso_date,
            settlement_amount=to_amount(
                first_present(raw, table.settlement_amount), field_name="settlement_amount"
            ),
            amount_paid=to_amount(first_present(raw, table.amount_paid), field_name="amount_paid"),
        )

    return _normalize_payouts(raws, table, build)


def normalize_analytics(
    raws: Sequence[object], fields: FieldTable
) -> NormalizationResult[AnalyticsSnapshot]:
    """Normalize analytics payloads; ``last_updated`` is left for the run to stamp."""

    if not isinstance(fields, AnalyticsFields):
        raise TypeError(f"Expected analytics field table, got {fields.source}")

    result: NormalizationResult[AnalyticsSnapshot] = NormalizationResult()
    for raw in raws:
        mapping = _as_mapping(raw)
        values = (
            {
                "affiliate_gmv": first_present(mapping, fields.affiliate_gmv),
                "est_commission": first_present(mapping, fields.est_commission),
                "orders": first_present(mapping, fields.orders),
                "gmv_refund": first_present(mapping, fields.gmv_refund),
            }
            if mapping is not None
            else {}
        )
        if not any(value is not None for value in values.values()):
            dropped = UnparseableRecord(f"{fields.source}: no analytics metrics", raw=raw)
            log.warning("Dropping record: %s", dropped.reason)
            result.dropped.append(dropped)
            continue
        result.records.append(
            AnalyticsSnapshot(
                affiliate_gmv=to_amount(values["affiliate_gmv"], field_name="affiliate_gmv"),
                est_commission=to_amount(values["est_commission"], field_name="est_commission"),
                orders=to_count(values["orders"], field_name="orders"),
                gmv_refund=to_amount(values["gmv_refund"], field_name="gmv_refund"),
                reported=frozenset(name for name, value in values.items() if value is not None),
            )
        )
    return result


_DASHBOARD_LABELS = {
    "affiliate_gmv": re.compile(r"Affiliate\s+GMV"),
    "est_commission": re.compile(r"Est\.\s*commission"),
    "orders": re.compile(r"\bOrders\b"),
    "gmv_refund": re.compile(r"GMV\s*\(\s*refund\s*\)"),
}
_DOLLAR_VALUE = re.compile(r"\$([\d,]+\.?\d*)")
_PLAIN_INTEGER = re.compile(r"(?<![$\d.,])(\d[\d,]{0,19})(?![.\d])")
_LABEL_WINDOW = 200


def _value_after(text: str, label: re.Pattern[str], value: re.Pattern[str]) -> str | None:
    match = label.search(text)
    if match is None:
        return None
    window = text[match.end() : match.end() + _LABEL_WINDOW]
    found = value.search(window)
    if found is None:
        return None
    return found.group(1).replace(",", "")


def extract_dashboard_metrics(text: str) -> dict[str, str] | None:
    """Pull the four key metrics out of rendered dashboard text.

    Returns ``None`` unless every metric is found, so a half-rendered page never
    replaces a complete snapshot.
    """

    metrics: dict[str, str] = {}
    missing: list[str] = []
    for name, label in _DASHBOARD_LABELS.items():
        pattern = _PLAIN_INTEGER if name == "orders" else _DOLLAR_VALUE
        value = _value_after(text, label, pattern)
        if value is None:
            missing.append(name)
            continue
        metrics[name] = value

    if missing:
        log.warning("Dashboard text is missing metrics: %s", ", ".join(missing))
        return None
    return metrics
