"""Alert transport configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .errors import InvalidConfigurationError
from .http_resilience import ResilienceConfig, RetryPolicy

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class GitHubAlertConfig:
    """Holds the GitHub Issues settings used for auth-expiry alerts."""

    token: str
    repository: str
    resilience: ResilienceConfig


def get_github_alert_config(
    *, resilience: ResilienceConfig | None = None
) -> GitHubAlertConfig | None:
    """Return the alert transport settings, or ``None`` when alerting is not configured."""

    if optional_env_var("GITHUB_TOKEN") is None and optional_env_var("GITHUB_REPOSITORY") is None:
        return None
    values = require_env_vars(("GITHUB_TOKEN", "GITHUB_REPOSITORY"))
    token = values["GITHUB_TOKEN"].strip()
    repository = values["GITHUB_REPOSITORY"].strip()
    if repository.count("/") != 1:
        raise InvalidConfigurationError(
            "GITHUB_REPOSITORY", repository, "must look like 'owner/name'"
        )

    return GitHubAlertConfig(
        token=token,
        repository=repository,
        resilience=resilience
        or ResilienceConfig(
            name="github",
            base_url=GITHUB_API_BASE_URL,
            timeout_seconds=GITHUB_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=2),
            default_headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        ),
    )
