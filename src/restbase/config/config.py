"""Core configuration management for restbase.

This module provides the configuration models and loading functionality
with YAML file and environment variable support. Configuration values are
always constructed explicitly and passed to the components that need them.
"""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ConfigError(Exception):
    """Configuration-related errors."""

    pass


class BackendConfig(BaseModel):
    """Connection settings for the backend.

    Attributes:
        url: Project base URL, e.g. https://xyz.example.co
        anon_key: Public API key sent as the ``apikey`` header
        timeout_seconds: Per-request timeout
    """

    url: str = ""
    anon_key: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)

    model_config = ConfigDict(frozen=True)

    @property
    def is_valid(self) -> bool:
        """Whether both the URL and the API key are set."""
        return bool(self.url.strip()) and bool(self.anon_key.strip())


class SessionConfig(BaseModel):
    """Session persistence configuration."""

    db_path: str = "restbase_session.db"


class PollerConfig(BaseModel):
    """Change poller configuration."""

    interval_seconds: float = 1.0
    table: str = "rankings"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"
    enable_pii_redaction: bool = True


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = False
    port: int = 8000


class TracingConfig(BaseModel):
    """Tracing configuration.

    Spans go to the OTLP endpoint when one is set, otherwise to the console.
    """

    enabled: bool = False
    service_name: str = "restbase"
    otlp_endpoint: str | None = None


class Config(BaseModel):
    """Main configuration class for restbase.

    This class combines all configuration sections and provides
    validation and environment variable loading.
    """

    backend: BackendConfig = Field(default_factory=BackendConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    poller: PollerConfig = Field(default_factory=PollerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)

    environment: Literal["development", "staging", "production"] = "development"


def load_config_from_file(config_path: Path) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Loaded configuration

    Raises:
        ConfigError: If configuration is invalid or file cannot be read
    """
    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        return Config(**config_data)

    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {name}: {value}") from e


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Environment variables are mapped as follows:
    - RESTBASE_URL: Backend base URL
    - RESTBASE_ANON_KEY: Public API key
    - RESTBASE_TIMEOUT: Request timeout in seconds
    - RESTBASE_SESSION_DB: Path of the session SQLite file
    - RESTBASE_POLL_INTERVAL: Poller interval in seconds
    - RESTBASE_POLL_TABLE: Table watched by the CLI poller
    - RESTBASE_LOG_LEVEL: Logging level
    - RESTBASE_LOG_FORMAT: Logging format (json/text)
    - RESTBASE_METRICS_PORT: Metrics server port (enables metrics)
    - RESTBASE_OTLP_ENDPOINT: OTLP collector endpoint (enables tracing)
    - RESTBASE_ENVIRONMENT: Environment name (development/staging/production)

    Returns:
        Configuration loaded from environment variables
    """
    config_data: dict[str, object] = {}

    if env_val := os.getenv("RESTBASE_ENVIRONMENT"):
        config_data["environment"] = env_val.lower()

    backend_config: dict[str, object] = {}
    if env_val := os.getenv("RESTBASE_URL"):
        backend_config["url"] = env_val
    if env_val := os.getenv("RESTBASE_ANON_KEY"):
        backend_config["anon_key"] = env_val
    if env_val := os.getenv("RESTBASE_TIMEOUT"):
        backend_config["timeout_seconds"] = _parse_float("RESTBASE_TIMEOUT", env_val)
    if backend_config:
        config_data["backend"] = backend_config

    if env_val := os.getenv("RESTBASE_SESSION_DB"):
        config_data["session"] = {"db_path": env_val}

    poller_config: dict[str, object] = {}
    if env_val := os.getenv("RESTBASE_POLL_INTERVAL"):
        poller_config["interval_seconds"] = _parse_float(
            "RESTBASE_POLL_INTERVAL", env_val
        )
    if env_val := os.getenv("RESTBASE_POLL_TABLE"):
        poller_config["table"] = env_val
    if poller_config:
        config_data["poller"] = poller_config

    logging_config: dict[str, object] = {}
    if env_val := os.getenv("RESTBASE_LOG_LEVEL"):
        logging_config["level"] = env_val.upper()
    if env_val := os.getenv("RESTBASE_LOG_FORMAT"):
        logging_config["format"] = env_val.lower()
    if logging_config:
        config_data["logging"] = logging_config

    if env_val := os.getenv("RESTBASE_METRICS_PORT"):
        try:
            config_data["metrics"] = {"enabled": True, "port": int(env_val)}
        except ValueError as e:
            raise ConfigError(f"Invalid RESTBASE_METRICS_PORT: {env_val}") from e

    if env_val := os.getenv("RESTBASE_OTLP_ENDPOINT"):
        config_data["tracing"] = {"enabled": True, "otlp_endpoint": env_val}

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Environment configuration validation failed: {e}") from e


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded in the following order (later sources override earlier):
    1. Default values
    2. Configuration file (if provided)
    3. Environment variables

    Args:
        config_path: Optional path to configuration file

    Returns:
        Merged configuration
    """
    config_data = Config().model_dump()

    if config_path and config_path.exists():
        file_config = load_config_from_file(config_path)
        config_data = _merge(config_data, file_config.model_dump(exclude_unset=True))

    env_config = load_config_from_env()
    config_data = _merge(config_data, env_config.model_dump(exclude_unset=True))

    return Config(**config_data)


def validate_config(config: Config) -> None:
    """Validate configuration for consistency and correctness.

    Args:
        config: Configuration to validate

    Raises:
        ConfigError: If configuration is invalid
    """
    if not config.backend.is_valid:
        raise ConfigError("backend.url and backend.anon_key must both be set")

    if not config.backend.url.startswith(("http://", "https://")):
        raise ConfigError(
            f"backend.url must start with http:// or https://: {config.backend.url}"
        )

    if config.poller.interval_seconds <= 0:
        raise ConfigError("poller.interval_seconds must be positive")

    if not config.session.db_path:
        raise ConfigError("session.db_path must not be empty")

    if config.metrics.port <= 0 or config.metrics.port > 65535:
        raise ConfigError("metrics.port must be between 1 and 65535")

    if config.tracing.enabled and not config.tracing.service_name:
        raise ConfigError("tracing.service_name must not be empty")

    if config.environment == "production":
        if config.backend.url.startswith("http://"):
            raise ConfigError("Plain HTTP backends should not be used in production")

        if config.logging.level == "DEBUG":
            raise ConfigError("DEBUG logging should not be used in production")

        if not config.logging.enable_pii_redaction:
            raise ConfigError("PII redaction should be enabled in production")
