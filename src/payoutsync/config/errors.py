"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration values are absent or blank."""


class InvalidConfigurationError(ConfigurationError):
    """Raised when an environment variable is set but cannot be used."""

    def __init__(self, name: str, value: str, reason: str) -> None:
        super().__init__(f"{name} {reason}, got {value!r}")
        self.name = name
        self.value = value
