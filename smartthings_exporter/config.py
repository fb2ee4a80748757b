"""Configuration models using Pydantic for validation."""
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
import os

from smartthings_exporter.errors import ConfigError


class WebConfig(BaseModel):
    """HTTP listener for the metrics endpoint and landing page."""
    listen_address: str = ":9499"
    telemetry_path: str = "/metrics"

    @field_validator('listen_address')
    @classmethod
    def validate_listen_address(cls, v):
        """Require a [host]:port address."""
        host, sep, port = v.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"Invalid listen address '{v}', expected [host]:port")
        return v

    @field_validator('telemetry_path')
    @classmethod
    def validate_telemetry_path(cls, v):
        if not v.startswith("/") or v == "/":
            raise ValueError(f"Telemetry path must start with '/' and not be the root: '{v}'")
        return v

    @property
    def host(self) -> str:
        host = self.listen_address.rpartition(":")[0]
        # ":9499" listens on every interface
        return host.strip("[]") or "0.0.0.0"

    @property
    def port(self) -> int:
        return int(self.listen_address.rpartition(":")[2])


class SmartThingsConfig(BaseModel):
    """SmartThings API access."""
    oauth_client: str = Field(min_length=1)
    oauth_token_file: Optional[str] = None
    timeout: Optional[float] = Field(default=None, gt=0)


class RegisterConfig(BaseModel):
    """Settings for the one-time OAuth registration."""
    listen_port: int = Field(default=4567, gt=0, lt=65536)
    oauth_client: str = Field(min_length=1)


class LoggingConfig(BaseModel):
    """Logging settings."""
    level: str = "INFO"
    format: Literal["json", "text"] = "text"

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        level = v.upper()
        if level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError(f"Invalid log level: {v}")
        return level


class ExporterConfig(BaseModel):
    """Root configuration model for the start command."""
    web: WebConfig = Field(default_factory=WebConfig)
    smartthings: SmartThingsConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('smartthings')
    @classmethod
    def validate_token_file(cls, v):
        if not v.oauth_token_file:
            raise ValueError("An OAuth token file is required")
        return v


def read_config_file(config_path: str) -> Dict[str, Any]:
    """Read a YAML configuration file into a raw dictionary."""
    import yaml

    if not os.path.exists(config_path):
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file {config_path}: {e}")

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")

    return raw_config


def merge_overrides(raw_config: Dict[str, Any], overrides: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Apply non-empty section overrides (command-line flags) on top of raw config."""
    merged = dict(raw_config)
    for section, values in overrides.items():
        present = {key: value for key, value in values.items() if value is not None}
        if present:
            merged[section] = {**(merged.get(section) or {}), **present}
    return merged


def apply_env_overrides(raw_config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides."""
    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config["logging"] = {**(raw_config.get("logging") or {}), "level": env_log_level}
    return raw_config


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> ExporterConfig:
    """Load and validate the exporter configuration.

    Values come from the optional YAML file, then the ``LOG_LEVEL``
    environment variable, then ``overrides`` (command-line flags).
    """
    raw_config = read_config_file(config_path) if config_path else {}
    raw_config = apply_env_overrides(raw_config)
    raw_config = merge_overrides(raw_config, overrides or {})

    try:
        return ExporterConfig(**raw_config)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}")


def load_register_config(listen_port: Optional[int], oauth_client: Optional[str]) -> RegisterConfig:
    """Validate the register command settings."""
    raw_config = merge_overrides({}, {"register": {"listen_port": listen_port, "oauth_client": oauth_client}})
    try:
        return RegisterConfig(**raw_config.get("register", {}))
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}")
