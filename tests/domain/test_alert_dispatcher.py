from __future__ import annotations

import asyncio

from payoutsync.domain.alerts import (
    AUTH_ALERT_LABEL,
    AlertDispatcher,
    AlertOutcome,
    render_auth_alert_body,
)
from payoutsync.domain.errors import AuthExpired
from payoutsync.domain.fetching import StrategyFailure
from tests.helpers.partner import RUN_DATE, RecordingAlertSink


def test_dispatch_creates_single_labelled_alert() -> None:
    sink = RecordingAlertSink()
    dispatcher = AlertDispatcher(sink=sink)

    first = asyncio.run(dispatcher.dispatch("body"))
    second = asyncio.run(dispatcher.dispatch("body"))

    assert first is AlertOutcome.CREATED
    assert second is AlertOutcome.ALREADY_OPEN
    assert len(sink.created) == 1
    assert sink.created[0][2] == (AUTH_ALERT_LABEL,)


def test_dispatch_without_sink_is_disabled() -> None:
    assert asyncio.run(AlertDispatcher(sink=None).dispatch("body")) is AlertOutcome.DISABLED


def test_dispatch_swallows_ticketing_failures() -> None:
    sink = RecordingAlertSink(fail_with=RuntimeError("ticketing down"))

    outcome = asyncio.run(AlertDispatcher(sink=sink).dispatch("body"))

    assert outcome is AlertOutcome.FAILED


def test_alert_body_lists_failures_and_remediation() -> None:
    failure = StrategyFailure(
        strategy="partner-center/distribution-payouts",
        error=AuthExpired("redirected to /login", status_code=302),
    )

    body = render_auth_alert_body({"distribution_payouts": [failure]}, run_date=RUN_DATE)

    assert "2025-03-14" in body
    assert "`distribution_payouts` via `partner-center/distribution-payouts`" in body
    assert "redirected to /login" in body
    assert "PARTNER_SESSION_COOKIE" in body
