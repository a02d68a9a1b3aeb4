import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from webroot_server.config import DEFAULT_PORT, ServerConfig, parse_port


def test_port_defaults_when_absent():
    assert parse_port([]) == DEFAULT_PORT == 8080


def test_port_from_first_argument():
    assert parse_port(["9000"]) == 9000


@pytest.mark.parametrize("argv", [["abc"], ["80.5"], ["70000"], ["-1"]])
def test_unparseable_port_falls_back_to_default(argv):
    assert parse_port(argv) == DEFAULT_PORT


def test_webroot_is_made_absolute():
    config = ServerConfig(webroot=Path("site"))
    assert config.webroot.is_absolute()
    assert config.webroot == Path(os.path.abspath("site"))


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("WEBROOT", str(tmp_path / "public"))
    monkeypatch.setenv("MAX_CONNECTIONS", "7")
    monkeypatch.setenv("REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "requests.log"))

    config = ServerConfig.from_env(port=9090)

    assert config.port == 9090
    assert config.host == "127.0.0.1"
    assert config.webroot == tmp_path / "public"
    assert config.max_connections == 7
    assert config.request_timeout == 2.5
    assert config.log_file == tmp_path / "requests.log"


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        ServerConfig(port=70000)
    with pytest.raises(ValidationError):
        ServerConfig(max_connections=0)
