from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

DATA_DIR = Path(__file__).resolve().parent / "data"

_PARTNER_ENV_VARS = (
    "PARTNER_SESSION_COOKIE",
    "PARTNER_APP_KEY",
    "PARTNER_APP_SECRET",
    "PARTNER_ACCESS_TOKEN",
    "PARTNER_DISTRIBUTION_ID",
    "PARTNER_CREATOR_ID",
    "PARTNER_API_BASE_URL",
    "PARTNER_CENTER_BASE_URL",
    "PARTNER_TIMEOUT_SECONDS",
    "PARTNER_DASHBOARD_COMMAND",
    "PARTNER_DASHBOARD_TIMEOUT_SECONDS",
    "PAYOUTSYNC_DATA_FILE",
    "PAYOUTSYNC_AUTH_ERROR_CODES",
    "GITHUB_TOKEN",
    "GITHUB_REPOSITORY",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _PARTNER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def load_partner_payload(name: str) -> dict[str, Any]:
    path = DATA_DIR / "partner" / name
    with path.open(encoding="utf-8") as handle:
        return json.load(handle)


@pytest.fixture(scope="session")
def payout_search_pages() -> tuple[dict[str, Any], ...]:
    return (
        load_partner_payload("payout_search_page1.json"),
        load_partner_payload("payout_search_page2.json"),
    )


@pytest.fixture(scope="session")
def statements_payload() -> dict[str, Any]:
    return load_partner_payload("statements.json")
