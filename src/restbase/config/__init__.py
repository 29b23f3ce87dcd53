"""Configuration management for restbase.

This module provides configuration loading and validation for the
backend connection, session persistence, polling and observability.
"""

from .config import (
    BackendConfig,
    Config,
    ConfigError,
    LoggingConfig,
    MetricsConfig,
    PollerConfig,
    SessionConfig,
    TracingConfig,
    load_config,
    load_config_from_env,
    load_config_from_file,
    validate_config,
)

__all__ = [
    "BackendConfig",
    "Config",
    "ConfigError",
    "LoggingConfig",
    "MetricsConfig",
    "PollerConfig",
    "SessionConfig",
    "TracingConfig",
    "load_config",
    "load_config_from_env",
    "load_config_from_file",
    "validate_config",
]
