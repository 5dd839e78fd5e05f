"""Out-of-band notification when the partner credential has expired."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import date

    from .fetching import StrategyFailure

log = getLogger(__name__)

AUTH_ALERT_LABEL = "payoutsync-auth-expired"
AUTH_ALERT_TITLE = "Partner credential expired"

REMEDIATION_STEPS = (
    "1. Log in to the partner center in a browser with the agency account.",
    "2. Copy the session cookie header and update the `PARTNER_SESSION_COOKIE` secret.",
    "3. If the signed open API is in use, re-run the OAuth authorization and update "
    "`PARTNER_ACCESS_TOKEN`.",
    "4. Re-run the sync job and close this issue once the dataset has refreshed.",
)


@dataclass(frozen=True, slots=True)
class Alert:
    identifier: str
    title: str
    url: str | None = None


class AlertSink(Protocol):
    """Ticketing collaborator. Idempotency is the dispatcher's job, not the sink's."""

    async def search(self, label: str) -> Sequence[Alert]: ...

    async def create(self, title: str, body: str, labels: Sequence[str]) -> Alert: ...


class AlertOutcome(StrEnum):
    CREATED = "created"
    ALREADY_OPEN = "already_open"
    DISABLED = "disabled"
    FAILED = "failed"


def render_auth_alert_body(
    failures: Mapping[str, Sequence[StrategyFailure]], *, run_date: date
) -> str:
    lines = [
        f"The scheduled partner sync on {run_date.isoformat()} was rejected by the platform.",
        "Persisted data was kept unchanged for the affected categories.",
        "",
        "## Failures",
    ]
    for category, category_failures in failures.items():
        for failure in category_failures:
            lines.append(f"- `{category}` via `{failure.strategy}`: {failure.error}")
    lines.extend(["", "## Remediation", *REMEDIATION_STEPS, ""])
    return "\n".join(lines)


@dataclass(slots=True)
class AlertDispatcher:
    """Raise at most one open auth-expiry alert; never fail the run."""

    sink: AlertSink | None
    label: str = AUTH_ALERT_LABEL
    title: str = AUTH_ALERT_TITLE

    async def dispatch(self, body: str) -> AlertOutcome:
        if self.sink is None:
            log.warning("Credential expired but no alert transport is configured")
            return AlertOutcome.DISABLED

        try:
            open_alerts = await self.sink.search(self.label)
            if open_alerts:
                log.info(
                    "Auth alert already open (%s); not creating another",
                    open_alerts[0].url or open_alerts[0].identifier,
                )
                return AlertOutcome.ALREADY_OPEN
            alert = await self.sink.create(self.title, body, [self.label])
        except Exception:  # noqa: BLE001
            log.warning("Could not file auth-expiry alert", exc_info=True)
            return AlertOutcome.FAILED

        log.warning(f"Filed auth-expiry alert {alert.url or alert.identifier}")
        return AlertOutcome.CREATED
