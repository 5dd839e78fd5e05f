from __future__ import annotations

import logging
from pathlib import Path

import pytest

from payoutsync.config import (
    InvalidConfigurationError,
    MissingConfigurationError,
    configure_logging,
    get_github_alert_config,
    get_partner_config,
    get_storage_config,
    optional_env_var,
    require_env_vars,
)
from payoutsync.config.partner import DEFAULT_AUTH_ERROR_CODES, DEFAULT_DASHBOARD_TIMEOUT_SECONDS


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_optional_env_var_strips_and_treats_blank_as_unset(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value  ")
    monkeypatch.setenv("BLANK_VAR", "  ")

    assert optional_env_var("EXAMPLE_VAR") == "value"
    assert optional_env_var("BLANK_VAR") is None


def test_partner_config_without_environment_has_no_credentials() -> None:
    config = get_partner_config()

    assert not config.has_credentials
    assert config.open_api is None
    assert config.auth_error_codes == DEFAULT_AUTH_ERROR_CODES
    assert config.dashboard_command is None
    assert config.dashboard_timeout_seconds == DEFAULT_DASHBOARD_TIMEOUT_SECONDS


def test_partial_open_api_credentials_are_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PARTNER_APP_KEY", "key")
    monkeypatch.setenv("PARTNER_APP_SECRET", "secret")

    config = get_partner_config()

    assert config.open_api is None
    assert not config.has_credentials


def test_partner_config_reads_every_credential(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PARTNER_APP_KEY", "key")
    monkeypatch.setenv("PARTNER_APP_SECRET", "secret")
    monkeypatch.setenv("PARTNER_ACCESS_TOKEN", "token")
    monkeypatch.setenv("PARTNER_SESSION_COOKIE", "sid_tt=abc")
    monkeypatch.setenv("PARTNER_DISTRIBUTION_ID", "7001")
    monkeypatch.setenv("PARTNER_CREATOR_ID", "7002")
    monkeypatch.setenv("PARTNER_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("PAYOUTSYNC_AUTH_ERROR_CODES", "36009004, 401")
    monkeypatch.setenv("PARTNER_DASHBOARD_COMMAND", "node scripts/scrape.js --json")

    config = get_partner_config()

    assert config.open_api is not None
    assert config.open_api.access_token == "token"
    assert config.session_cookie == "sid_tt=abc"
    assert config.distribution_partner_id == "7001"
    assert config.creator_partner_id == "7002"
    assert config.timeout_seconds == 12.5
    assert config.auth_error_codes == DEFAULT_AUTH_ERROR_CODES | {36009004}
    assert config.dashboard_command == ("node", "scripts/scrape.js", "--json")
    assert (config.center_resilience().default_headers or {})["Cookie"] == "sid_tt=abc"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PARTNER_TIMEOUT_SECONDS", "soon"),
        ("PAYOUTSYNC_AUTH_ERROR_CODES", "401,expired"),
        ("PARTNER_DASHBOARD_COMMAND", "node 'unterminated"),
    ],
)
def test_invalid_partner_values_raise(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(InvalidConfigurationError) as exc:
        get_partner_config()

    assert exc.value.name == name
    assert name in str(exc.value)


def test_github_alert_config_absent_when_unset() -> None:
    assert get_github_alert_config() is None


def test_github_alert_config_requires_both_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_REPOSITORY", "agency/payouts")

    with pytest.raises(MissingConfigurationError) as exc:
        get_github_alert_config()

    assert "GITHUB_TOKEN" in str(exc.value)


def test_github_alert_config_rejects_malformed_repository(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_example")
    monkeypatch.setenv("GITHUB_REPOSITORY", "payouts")

    with pytest.raises(InvalidConfigurationError) as exc:
        get_github_alert_config()

    assert exc.value.value == "payouts"


def test_github_alert_config_builds_authorized_resilience(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_example")
    monkeypatch.setenv("GITHUB_REPOSITORY", "agency/payouts")

    config = get_github_alert_config()

    assert config is not None
    assert config.repository == "agency/payouts"
    headers = config.resilience.default_headers or {}
    assert headers["Authorization"] == "Bearer ghp_example"


def test_storage_config_prefers_explicit_path(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("PAYOUTSYNC_DATA_FILE", str(tmp_path / "env.json"))

    assert get_storage_config(data_file=tmp_path / "cli.json").data_file == tmp_path / "cli.json"
    assert get_storage_config().data_file == tmp_path / "env.json"


def test_storage_config_defaults_to_working_directory(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)

    assert get_storage_config().data_file == tmp_path / "agency-data.json"


def test_configure_logging_keeps_request_urls_out_of_debug_output() -> None:
    configure_logging(level=logging.DEBUG, force=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING
