from __future__ import annotations

from decimal import Decimal

from payoutsync.domain.fetching import FetchStatus
from payoutsync.domain.merge import merge, reconcile_collection
from payoutsync.domain.model import CreatorPayoutRecord, DistributionPayoutRecord


def _dist(
    statement_id: str, date: str, amount_paid: int | str, type_: str = "unknown"
) -> DistributionPayoutRecord:
    return DistributionPayoutRecord(
        statement_id=statement_id,
        date=date,
        settlement_amount=Decimal(amount_paid),
        amount_paid=Decimal(amount_paid),
        type=type_,
    )


def test_merge_example_incoming_wins_and_sorts_descending() -> None:
    existing = [_dist("A", "2026-02-01", 100)]
    incoming = [_dist("A", "2026-02-01", 150), _dist("B", "2026-02-03", 50)]

    merged = merge(existing, incoming)

    assert [(r.statement_id, r.date, r.amount_paid) for r in merged] == [
        ("B", "2026-02-03", Decimal(50)),
        ("A", "2026-02-01", Decimal(150)),
    ]


def test_merge_is_idempotent() -> None:
    existing = [_dist("A", "2026-02-01", 100), _dist("C", "2026-01-15", 20)]
    incoming = [_dist("A", "2026-02-01", 150), _dist("B", "2026-02-03", 50)]

    once = merge(existing, incoming)

    assert merge(once, incoming) == once


def test_merge_keeps_existing_records_missing_from_incoming() -> None:
    existing = [_dist("OLD", "2025-11-30", 75)]

    merged = merge(existing, [_dist("NEW", "2025-12-31", 10)])

    assert {r.statement_id for r in merged} == {"OLD", "NEW"}


def test_merge_uses_composite_key_when_id_is_missing() -> None:
    existing = [_dist("", "2026-01-01", "150.0", "AFFILIATE")]
    incoming = [
        _dist("", "2026-01-01", "150", "AFFILIATE"),
        _dist("", "2026-01-01", "150", "SETTLE"),
    ]

    merged = merge(existing, incoming)

    assert len(merged) == 2
    assert merged[0].amount_paid == Decimal("150")


def test_merge_ties_keep_incoming_before_existing() -> None:
    existing = [CreatorPayoutRecord(payment_id="E", date="2026-02-01")]
    incoming = [CreatorPayoutRecord(payment_id="I", date="2026-02-01")]

    merged = merge(existing, incoming)

    assert [r.payment_id for r in merged] == ["I", "E"]


def test_guard_keeps_existing_on_no_data() -> None:
    existing = [_dist("A", "2026-02-01", 100)]

    result = reconcile_collection(existing, [], FetchStatus.NO_DATA)

    assert result == existing


def test_guard_keeps_existing_when_records_status_has_nothing() -> None:
    existing = [_dist("A", "2026-02-01", 100)]

    assert reconcile_collection(existing, [], FetchStatus.RECORDS) == existing


def test_guard_allows_confirmed_empty() -> None:
    existing = [_dist("A", "2026-02-01", 100)]

    assert reconcile_collection(existing, [], FetchStatus.CONFIRMED_EMPTY) == []


def test_guard_merges_on_records() -> None:
    existing = [_dist("A", "2026-02-01", 100)]
    incoming = [_dist("B", "2026-02-03", 50)]

    result = reconcile_collection(existing, incoming, FetchStatus.RECORDS)

    assert [r.statement_id for r in result] == ["B", "A"]
