"""GitHub Issues as the destination for auth-expiry alerts."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, TypeAdapter

from payoutsync.adapters.http_resilience import ResilientClient
from payoutsync.domain.alerts import Alert

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from payoutsync.config.alerts import GitHubAlertConfig
    from payoutsync.config.http_resilience import ResilienceConfig
    from payoutsync.domain.alerts import AlertSink

log = getLogger(__name__)


class IssuePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    title: str
    html_url: str | None = None
    pull_request: dict[str, Any] | None = None

    def to_alert(self) -> Alert:
        return Alert(identifier=str(self.number), title=self.title, url=self.html_url)


_ISSUE_LIST = TypeAdapter(list[IssuePayload])


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class GitHubIssueSink:
    config: GitHubAlertConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    @property
    def _issues_path(self) -> str:
        return f"/repos/{self.config.repository}/issues"

    async def search(self, label: str) -> Sequence[Alert]:
        async with self.client_factory(self.config.resilience) as client:
            response = await client.get(
                self._issues_path,
                params={"labels": label, "state": "open", "per_page": "10"},
            )
        response.raise_for_status()
        issues = _ISSUE_LIST.validate_python(response.json())
        # The issues endpoint also lists pull requests.
        return [issue.to_alert() for issue in issues if issue.pull_request is None]

    async def create(self, title: str, body: str, labels: Sequence[str]) -> Alert:
        async with self.client_factory(self.config.resilience) as client:
            response = await client.post(
                self._issues_path,
                json={"title": title, "body": body, "labels": list(labels)},
            )
        response.raise_for_status()
        issue = IssuePayload.model_validate(response.json())
        log.info(f"Created issue #{issue.number} in {self.config.repository}")
        return issue.to_alert()


if TYPE_CHECKING:

    def _check_sink(sink: GitHubIssueSink) -> AlertSink:
        return sink
