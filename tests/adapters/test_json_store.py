from __future__ import annotations

import json
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from payoutsync.adapters.json_store import JsonStateStore
from payoutsync.domain.errors import StateFileError
from payoutsync.domain.model import (
    AnalyticsSnapshot,
    CreatorPayoutRecord,
    DistributionPayoutRecord,
    PersistedState,
)

if TYPE_CHECKING:
    from pathlib import Path


def _state() -> PersistedState:
    return PersistedState(
        analytics=AnalyticsSnapshot(
            affiliate_gmv=Decimal("486223.22"),
            est_commission=Decimal("41184.76"),
            orders=23077,
            gmv_refund=Decimal("13266.62"),
            last_updated="2025-03-14",
        ),
        payouts=[
            CreatorPayoutRecord(
                payment_id="C-1",
                date="2025-03-07",
                settlement_amount=Decimal("980.00"),
                amount_paid=Decimal("975.25"),
            )
        ],
        distribution_payouts=[
            DistributionPayoutRecord(
                statement_id="D-1",
                date="2025-03-14",
                settlement_amount=Decimal("150"),
                amount_paid=Decimal("150.0"),
                type="PRODUCT_DISTRIBUTION",
            )
        ],
    )


def test_missing_file_loads_empty_state(tmp_path: Path) -> None:
    store = JsonStateStore(tmp_path / "agency-data.json")

    state = store.load()

    assert state == PersistedState.empty()


def test_saved_file_layout(tmp_path: Path) -> None:
    path = tmp_path / "agency-data.json"

    JsonStateStore(path).save(_state())

    text = path.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert text.startswith('{\n  "analytics": {\n    "last_updated": "2025-03-14",')
    payload = json.loads(text)
    assert list(payload) == ["analytics", "payouts", "distribution_payouts"]
    assert payload["payouts"] == [
        {
            "payment_id": "C-1",
            "date": "2025-03-07",
            "settlement_amount": 980,
            "amount_paid": 975.25,
        }
    ]
    assert payload["distribution_payouts"][0]["amount_paid"] == 150
    assert '"amount_paid": 150,' in text
    assert payload["distribution_payouts"][0]["currency"] == "USD"


def test_round_trip_preserves_records(tmp_path: Path) -> None:
    store = JsonStateStore(tmp_path / "agency-data.json")

    store.save(_state())

    assert store.load() == _state()


def test_load_accepts_partial_legacy_records(tmp_path: Path) -> None:
    path = tmp_path / "agency-data.json"
    path.write_text(
        json.dumps(
            {
                "analytics": {},
                "payouts": [{"payment_id": 12345, "date": "2025-01-02", "amount_paid": None}],
                "distribution_payouts": [
                    {"date": "2025-01-03", "amount_paid": 10.1, "status": "PAID"}
                ],
            }
        ),
        encoding="utf-8",
    )

    state = JsonStateStore(path).load()

    assert state.payouts == [
        CreatorPayoutRecord(payment_id="12345", date="2025-01-02", amount_paid=Decimal(0))
    ]
    (record,) = state.distribution_payouts
    assert record.statement_id == ""
    assert record.amount_paid == Decimal("10.1")
    assert record.type == "unknown"


@pytest.mark.parametrize("content", ["{not json", "[]", '{"payouts": "nope"}'])
def test_corrupt_file_raises_and_is_not_touched(tmp_path: Path, content: str) -> None:
    path = tmp_path / "agency-data.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(StateFileError):
        JsonStateStore(path).load()

    assert path.read_text(encoding="utf-8") == content


def test_save_replaces_file_without_leaving_temporaries(tmp_path: Path) -> None:
    path = tmp_path / "agency-data.json"
    path.write_text("{}\n", encoding="utf-8")

    JsonStateStore(path).save(_state())

    assert [entry.name for entry in tmp_path.iterdir()] == ["agency-data.json"]
    assert json.loads(path.read_text(encoding="utf-8"))["analytics"]["orders"] == 23077
