from __future__ import annotations

from pathlib import Path

import pytest

from usersapi.config import ServiceConfig, load_config, load_config_file, resolve_config_path


def test_defaults_without_file_or_environment(tmp_path: Path) -> None:
    config = load_config({"USERS_API_CONFIG": str(tmp_path / "missing.yaml")})
    assert config == ServiceConfig()
    assert config.server_url() == "http://localhost:3000/api/v1"


def test_yaml_file_then_environment_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "service.yaml"
    config_path.write_text(
        "service:\n"
        "  environment: staging\n"
        "  port: 8000\n"
        "  public_url: https://users.example.com/\n",
        encoding="utf-8",
    )

    config = load_config(
        {
            "USERS_API_CONFIG": str(config_path),
            "USERS_API_PORT": "9000",
            "USERS_API_LOG_LEVEL": "debug",
            "USERS_API_ENV": "production",
        }
    )

    assert config.environment == "production"
    assert config.port == 9000
    assert config.log_level == "DEBUG"
    assert config.public_url == "https://users.example.com"
    assert config.server_url() == "https://users.example.com/api/v1"


def test_flat_yaml_mapping_is_accepted(tmp_path: Path) -> None:
    config_path = tmp_path / "service.yaml"
    config_path.write_text("version: 2.1.0\n", encoding="utf-8")
    assert load_config_file(config_path) == {"version": "2.1.0"}


@pytest.mark.parametrize("port", ["http", "0", "70000"])
def test_invalid_port_is_rejected(port: str, tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_config({"USERS_API_CONFIG": str(tmp_path / "none.yaml"), "USERS_API_PORT": port})


def test_unknown_fields_are_rejected() -> None:
    with pytest.raises(ValueError):
        ServiceConfig.from_dict({"colour": "blue"})


def test_resolve_config_path_prefers_environment(tmp_path: Path) -> None:
    assert resolve_config_path(str(tmp_path / "custom.yaml")) == (tmp_path / "custom.yaml").resolve()
    assert resolve_config_path(None).name == "service.yaml"
