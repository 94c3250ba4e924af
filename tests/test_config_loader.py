from pathlib import Path

import pytest

from tonsend.config import ConfigurationError, ServiceConfig, load_service_config


def test_load_service_config_prefers_environment_over_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        toncenter:
          api_url: https://filehost/api/v2
          api_key: file_key
          timeout: 45
          backoff_seconds: 30
          max_retries: 2
        """
    )

    env_map = {
        "TONSEND_API_URL": "https://envhost/api/v2/",
        "TONSEND_API_KEY": "env_key",
        "TONSEND_MAX_RETRIES": "9",
    }

    config = load_service_config(config_path=config_path, env=env_map)

    assert isinstance(config, ServiceConfig)
    assert config.base_url == "https://envhost/api/v2"
    assert config.api_key == "env_key"
    assert config.max_retries == 9
    assert config.timeout == 45.0
    assert config.backoff_seconds == 30.0


def test_overrides_win_over_environment(tmp_path: Path) -> None:
    config = load_service_config(
        config_path=_empty_yaml(tmp_path),
        env={"TONSEND_CREDENTIALS_PATH": "/env/.env"},
        overrides={"credentials_path": str(tmp_path / "wallet.env")},
    )
    assert config.credentials_path == tmp_path / "wallet.env"


def test_defaults_apply_without_any_source(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("tonsend.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")

    config = load_service_config(env={})

    assert config.base_url == "https://toncenter.com/api/v2"
    assert config.backoff_seconds == 60.0
    assert config.api_key is None


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_service_config(config_path=tmp_path / "nope.yaml", env={})


@pytest.mark.parametrize(
    "env_map",
    [
        {"TONSEND_TIMEOUT": "soon"},
        {"TONSEND_MAX_RETRIES": "0"},
        {"TONSEND_API_URL": "ftp://example"},
        {"TONSEND_BACKOFF_SECONDS": "-1"},
    ],
)
def test_invalid_values_raise(tmp_path: Path, env_map: dict) -> None:
    with pytest.raises(ConfigurationError):
        load_service_config(config_path=_empty_yaml(tmp_path), env=env_map)


def _empty_yaml(tmp_path: Path) -> Path:
    path = tmp_path / "empty.yaml"
    path.write_text("toncenter: {}\n")
    return path
