"""Application configuration helpers."""

from __future__ import annotations

from .alerts import GitHubAlertConfig, get_github_alert_config
from .env import optional_env_var, require_env_vars
from .errors import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .partner import OpenApiCredentials, PartnerConfig, get_partner_config
from .storage import StorageConfig, get_storage_config

__all__ = [
    "NO_RETRY",
    "ConfigurationError",
    "GitHubAlertConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "OpenApiCredentials",
    "PartnerConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_github_alert_config",
    "get_partner_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
