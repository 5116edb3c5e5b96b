from __future__ import annotations

from pathlib import Path

import pytest

from orderhub.config import ServiceSettings, load_settings, resolve_config_path


def test_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.yaml", environ={})

    assert settings == ServiceSettings()
    assert settings.port == 3000
    assert settings.listener_buffer_size == 256


def test_yaml_file_is_loaded(tmp_path: Path) -> None:
    config_path = tmp_path / "orderhub.yaml"
    config_path.write_text(
        "host: 127.0.0.1\nport: 8080\nlistener_buffer_size: 16\nhandshake_message: hi\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path, environ={})

    assert settings.host == "127.0.0.1"
    assert settings.port == 8080
    assert settings.listener_buffer_size == 16
    assert settings.handshake_message == "hi"


def test_environment_overrides_file(tmp_path: Path) -> None:
    config_path = tmp_path / "orderhub.yaml"
    config_path.write_text("port: 8080\n", encoding="utf-8")

    settings = load_settings(
        config_path,
        environ={"ORDERHUB_PORT": "9000", "ORDERHUB_LOG_LEVEL": "DEBUG", "ORDERHUB_LISTENER_BUFFER": "4"},
    )

    assert settings.port == 9000
    assert settings.log_level == "debug"
    assert settings.listener_buffer_size == 4


def test_plain_port_variable_is_honoured(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.yaml", environ={"PORT": "4000"})

    assert settings.port == 4000


def test_config_path_from_environment(tmp_path: Path) -> None:
    config_path = tmp_path / "custom.yaml"
    config_path.write_text("port: 5000\n", encoding="utf-8")

    settings = load_settings(environ={"ORDERHUB_CONFIG": str(config_path)})

    assert settings.port == 5000
    assert resolve_config_path(str(config_path)) == config_path.resolve()


@pytest.mark.parametrize(
    "content",
    [
        "port: 0\n",
        "port: abc\n",
        "listener_buffer_size: 0\n",
        "log_level: loud\n",
        "colour: blue\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_configuration_is_rejected(tmp_path: Path, content: str) -> None:
    config_path = tmp_path / "orderhub.yaml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings(config_path, environ={})
