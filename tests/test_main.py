#!/usr/bin/env python3
"""Tests for the command-line entry point."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
import io
import json
import pytest

from smartthings_exporter import main as cli
from smartthings_exporter.oauth_token import OAuthToken


@pytest.fixture
def serve(monkeypatch):
    """Replace exporter creation and the HTTP listener with mocks."""
    create = MagicMock()
    web_app = MagicMock()
    monkeypatch.setattr(cli, "create_exporter", create)
    monkeypatch.setattr(cli, "ExporterWebApp", web_app)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return create, web_app


def write_token(tmp_path, expiry):
    path = tmp_path / "token.json"
    path.write_text(OAuthToken(access_token="abc", expiry=expiry).to_json())
    return str(path)


def test_expired_token_exits_before_listening(tmp_path, serve):
    create, web_app = serve
    path = write_token(tmp_path, datetime.now(timezone.utc) - timedelta(days=1))

    status = cli.main([
        "start",
        "--smartthings.oauth-client", "client-id",
        "--smartthings.oauth-token.file", path,
    ])

    assert status == 1
    create.assert_not_called()
    web_app.assert_not_called()


def test_missing_token_file_exits(tmp_path, serve):
    create, web_app = serve

    status = cli.main([
        "--smartthings.oauth-client", "client-id",
        "--smartthings.oauth-token.file", str(tmp_path / "missing.json"),
    ])

    assert status == 1
    web_app.assert_not_called()


def test_start_is_default_command(tmp_path, serve):
    create, web_app = serve
    path = write_token(tmp_path, datetime.now(timezone.utc) + timedelta(days=30))

    status = cli.main([
        "--web.listen-address", "127.0.0.1:9100",
        "--web.telemetry-path", "/probe",
        "--smartthings.oauth-client", "client-id",
        "--smartthings.oauth-token.file", path,
    ])

    assert status == 0
    create.assert_called_once()
    config, token, registry = create.call_args.args
    assert config.oauth_client == "client-id"
    assert token.access_token == "abc"
    web_app.assert_called_once_with(registry, "/probe")
    web_app.return_value.run.assert_called_once_with("127.0.0.1", 9100)


def test_unreachable_api_exits_before_listening(tmp_path, serve):
    from smartthings_exporter.errors import SmartThingsAPIError
    create, web_app = serve
    create.side_effect = SmartThingsAPIError("connection refused")
    path = write_token(tmp_path, None)

    status = cli.main([
        "start",
        "--smartthings.oauth-client", "client-id",
        "--smartthings.oauth-token.file", path,
    ])

    assert status == 1
    web_app.assert_not_called()


def test_register_requires_interactive_terminal(monkeypatch, capsys):
    server = MagicMock()
    monkeypatch.setattr(cli, "OAuthCallbackServer", server)
    monkeypatch.setattr("sys.stdin", io.StringIO("piped-secret\n"))

    status = cli.main(["register", "--smartthings.oauth-client", "client-id"])

    assert status == 1
    server.assert_not_called()
    assert capsys.readouterr().out == ""


def test_register_prints_token(monkeypatch, capsys):
    token = OAuthToken(access_token="abc", refresh_token="def")
    server = MagicMock()
    server.return_value.fetch_token.return_value = token
    monkeypatch.setattr(cli, "OAuthCallbackServer", server)
    monkeypatch.setattr(cli, "read_secret", lambda: "client-secret")

    status = cli.main([
        "register",
        "--register.listen-port", "5000",
        "--smartthings.oauth-client", "client-id",
    ])

    assert status == 0
    oauth_config, port = server.call_args.args
    assert oauth_config.client_id == "client-id"
    assert oauth_config.client_secret == "client-secret"
    assert port == 5000
    printed = json.loads(capsys.readouterr().out)
    assert printed["access_token"] == "abc"
    assert printed["refresh_token"] == "def"


def test_register_empty_secret(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", MagicMock(isatty=lambda: True))
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt, stream=None: "")

    status = cli.main(["register", "--smartthings.oauth-client", "client-id"])

    assert status == 1
    assert capsys.readouterr().out == ""


def test_json_log_format(capsys):
    import logging

    cli.setup_logging("INFO", "json")
    logging.getLogger("smartthings_exporter.test").info("hello")

    entry = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert entry["level"] == "INFO"
    assert entry["logger"] == "smartthings_exporter.test"
    assert entry["message"] == "hello"
    assert "ts" in entry
