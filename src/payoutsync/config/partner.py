"""Partner platform configuration values."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field

from .env import optional_env_float, optional_env_var
from .errors import InvalidConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig

DEFAULT_API_BASE_URL = "https://open-api.tiktokglobalshop.com"
DEFAULT_CENTER_BASE_URL = "https://partner.us.tiktokshop.com"
DEFAULT_API_VERSION = "202309"
DEFAULT_CENTER_AID = "359713"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_DASHBOARD_TIMEOUT_SECONDS = 120.0

# HTTP statuses and open-API envelope codes for invalid or expired access tokens.
DEFAULT_AUTH_ERROR_CODES = frozenset({401, 403, 105001, 105002})

_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


@dataclass(frozen=True, slots=True)
class OpenApiCredentials:
    """Key/secret/token triple for the signed open API."""

    app_key: str
    app_secret: str
    access_token: str


@dataclass(frozen=True, slots=True)
class PartnerConfig:
    """Everything needed to talk to the partner platform for one run."""

    session_cookie: str | None = None
    open_api: OpenApiCredentials | None = None
    distribution_partner_id: str | None = None
    creator_partner_id: str | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    center_base_url: str = DEFAULT_CENTER_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    center_aid: str = DEFAULT_CENTER_AID
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    auth_error_codes: frozenset[int] = field(default_factory=lambda: DEFAULT_AUTH_ERROR_CODES)
    dashboard_command: tuple[str, ...] | None = None
    dashboard_timeout_seconds: float = DEFAULT_DASHBOARD_TIMEOUT_SECONDS

    @property
    def has_credentials(self) -> bool:
        return self.session_cookie is not None or self.open_api is not None

    def api_resilience(self) -> ResilienceConfig:
        return ResilienceConfig(
            name="partner-open-api",
            base_url=self.api_base_url,
            timeout_seconds=self.timeout_seconds,
            retry=NO_RETRY,
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            default_headers={"Content-Type": "application/json"},
        )

    def center_resilience(self) -> ResilienceConfig:
        headers = {"User-Agent": _BROWSER_USER_AGENT, "Accept": "application/json"}
        if self.session_cookie is not None:
            headers["Cookie"] = self.session_cookie
        return ResilienceConfig(
            name="partner-center",
            base_url=self.center_base_url,
            timeout_seconds=self.timeout_seconds,
            retry=NO_RETRY,
            ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
            default_headers=headers,
        )


def parse_auth_error_codes(raw: str | None) -> frozenset[int]:
    if raw is None:
        return DEFAULT_AUTH_ERROR_CODES
    codes: set[int] = set(DEFAULT_AUTH_ERROR_CODES)
    for chunk in raw.split(","):
        item = chunk.strip()
        if not item:
            continue
        try:
            codes.add(int(item))
        except ValueError as exc:
            raise InvalidConfigurationError(
                "PAYOUTSYNC_AUTH_ERROR_CODES", item, "must list integer codes"
            ) from exc
    return frozenset(codes)


def parse_dashboard_command(raw: str | None) -> tuple[str, ...] | None:
    if raw is None:
        return None
    try:
        parts = tuple(shlex.split(raw))
    except ValueError as exc:
        raise InvalidConfigurationError("PARTNER_DASHBOARD_COMMAND", raw, str(exc)) from exc
    return parts or None


def get_partner_config() -> PartnerConfig:
    """Build the partner configuration from the environment.

    Every credential is optional. A run without any credential degrades to
    keeping the persisted dataset untouched.
    """

    app_key = optional_env_var("PARTNER_APP_KEY")
    app_secret = optional_env_var("PARTNER_APP_SECRET")
    access_token = optional_env_var("PARTNER_ACCESS_TOKEN")
    open_api = (
        OpenApiCredentials(app_key=app_key, app_secret=app_secret, access_token=access_token)
        if app_key and app_secret and access_token
        else None
    )

    return PartnerConfig(
        session_cookie=optional_env_var("PARTNER_SESSION_COOKIE"),
        open_api=open_api,
        distribution_partner_id=optional_env_var("PARTNER_DISTRIBUTION_ID"),
        creator_partner_id=optional_env_var("PARTNER_CREATOR_ID"),
        api_base_url=optional_env_var("PARTNER_API_BASE_URL") or DEFAULT_API_BASE_URL,
        center_base_url=optional_env_var("PARTNER_CENTER_BASE_URL") or DEFAULT_CENTER_BASE_URL,
        timeout_seconds=optional_env_float("PARTNER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        auth_error_codes=parse_auth_error_codes(optional_env_var("PAYOUTSYNC_AUTH_ERROR_CODES")),
        dashboard_command=parse_dashboard_command(optional_env_var("PARTNER_DASHBOARD_COMMAND")),
        dashboard_timeout_seconds=optional_env_float(
            "PARTNER_DASHBOARD_TIMEOUT_SECONDS", DEFAULT_DASHBOARD_TIMEOUT_SECONDS
        ),
    )
