"""Merge freshly fetched records into the persisted collections.

Responsibilities of this stage:
- incoming records win over persisted records with the same identity key
- persisted records whose identity does not reappear are kept
- output is sorted by date descending, ties keep their relative order
- an ambiguous empty fetch never erases a non-empty collection
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .fetching import FetchStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .model import DatedRecord

log = getLogger(__name__)


def merge[TRecord: DatedRecord](
    existing: Sequence[TRecord], incoming: Sequence[TRecord]
) -> list[TRecord]:
    """Deduplicate ``incoming + existing`` by identity key and sort by date descending."""

    seen: set[str] = set()
    merged: list[TRecord] = []
    for record in (*incoming, *existing):
        key = record.identity_key
        if key in seen:
            continue
        seen.add(key)
        merged.append(record)

    # sorted() is stable, so equal dates keep incoming-before-existing order.
    return sorted(merged, key=lambda record: record.date, reverse=True)


def reconcile_collection[TRecord: DatedRecord](
    existing: Sequence[TRecord],
    incoming: Sequence[TRecord],
    status: FetchStatus,
    *,
    label: str = "collection",
) -> list[TRecord]:
    """Apply the non-regression guard, then merge."""

    if status is FetchStatus.CONFIRMED_EMPTY:
        if existing:
            log.warning(
                "%s: source confirmed zero records; clearing %s persisted records",
                label,
                len(existing),
            )
        return []

    if status is FetchStatus.NO_DATA or not incoming:
        if existing:
            log.warning(
                "%s: no usable data fetched; keeping %s persisted records unchanged",
                label,
                len(existing),
            )
        return list(existing)

    return merge(existing, incoming)
