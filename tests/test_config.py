#!/usr/bin/env python3
"""Tests for configuration loading."""
import pytest

from smartthings_exporter.config import WebConfig, load_config, load_register_config
from smartthings_exporter.errors import ConfigError

CONFIG_YAML = """
web:
  listen_address: "127.0.0.1:9100"
smartthings:
  oauth_client: from-file
  oauth_token_file: /etc/smartthings/token.json
logging:
  level: debug
"""


def test_defaults_from_flags_only(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    config = load_config(overrides={
        "smartthings": {"oauth_client": "client-id", "oauth_token_file": "token.json"},
    })

    assert config.web.listen_address == ":9499"
    assert config.web.host == "0.0.0.0"
    assert config.web.port == 9499
    assert config.web.telemetry_path == "/metrics"
    assert config.smartthings.timeout is None
    assert config.logging.level == "INFO"


def test_yaml_file_with_flag_overrides(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)

    config = load_config(str(path), overrides={
        "web": {"listen_address": None, "telemetry_path": "/probe"},
        "smartthings": {"oauth_client": "from-flag"},
    })

    assert config.web.host == "127.0.0.1"
    assert config.web.port == 9100
    assert config.web.telemetry_path == "/probe"
    assert config.smartthings.oauth_client == "from-flag"
    assert config.smartthings.oauth_token_file == "/etc/smartthings/token.json"
    assert config.logging.level == "DEBUG"


def test_log_level_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)

    assert load_config(str(path)).logging.level == "WARNING"


def test_missing_oauth_client():
    with pytest.raises(ConfigError):
        load_config(overrides={"smartthings": {"oauth_token_file": "token.json"}})


def test_missing_token_file_setting():
    with pytest.raises(ConfigError, match="token file"):
        load_config(overrides={"smartthings": {"oauth_client": "client-id"}})


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize("address", ["9499", "localhost:", "host:http", ":70000"])
def test_invalid_listen_address(address):
    with pytest.raises(ValueError):
        WebConfig(listen_address=address)


def test_ipv6_listen_address():
    web = WebConfig(listen_address="[::1]:9499")
    assert web.host == "::1"
    assert web.port == 9499


@pytest.mark.parametrize("path", ["metrics", "/"])
def test_invalid_telemetry_path(path):
    with pytest.raises(ValueError):
        WebConfig(telemetry_path=path)


def test_register_config_defaults():
    config = load_register_config(None, "client-id")
    assert config.listen_port == 4567
    assert config.oauth_client == "client-id"


def test_register_config_rejects_bad_port():
    with pytest.raises(ConfigError):
        load_register_config(0, "client-id")
