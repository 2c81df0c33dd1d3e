# tests/test_settings.py
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

import httpbuilder.utils.settings as settings_mod


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    settings_mod.get_settings.cache_clear()
    yield
    settings_mod.get_settings.cache_clear()


def _write_yaml(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "parameters.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_when_yaml_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", tmp_path / "missing.yaml")

    s = settings_mod.get_settings()

    assert s.default_timeout_ms == 20000
    assert s.follow_redirects is True
    assert s.service_name == "httpbuilder"


def test_yaml_values_are_loaded(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "default_timeout_ms: 7000\nmax_connections: 5\nenvironment: staging\n")
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", path)

    s = settings_mod.get_settings()

    assert s.default_timeout_ms == 7000
    assert s.max_connections == 5
    assert s.environment == "staging"


def test_env_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "default_timeout_ms: 7000\n")
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", path)
    monkeypatch.setenv("HTTPBUILDER_DEFAULT_TIMEOUT_MS", "1234")

    s = settings_mod.get_settings()

    assert s.default_timeout_ms == 1234


def test_non_dict_yaml_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "- just\n- a list\n")
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", path)

    assert settings_mod.get_settings().default_timeout_ms == 20000


def test_non_positive_timeout_fails_validation(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "default_timeout_ms: 0\n")
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", path)

    with pytest.raises(ValidationError):
        settings_mod.get_settings()


def test_get_settings_is_cached(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", tmp_path / "missing.yaml")
    assert settings_mod.get_settings() is settings_mod.get_settings()


def test_shipped_parameters_yaml_is_valid() -> None:
    assert settings_mod.PARAMETERS_PATH.exists()
    s = settings_mod.get_settings()
    assert s.default_timeout_ms == 20000


def test_unparsable_yaml_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "default_timeout_ms: [unclosed\n")
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", path)

    assert settings_mod.get_settings().default_timeout_ms == 20000


def test_invalid_env_value_fails_validation(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", tmp_path / "missing.yaml")
    monkeypatch.setenv("HTTPBUILDER_MAX_CONNECTIONS", "-3")

    with pytest.raises(ValidationError):
        settings_mod.get_settings()


def test_keyword_arguments_override_env_and_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path, "environment: staging\nuser_agent: from-yaml\n")
    monkeypatch.setattr(settings_mod, "PARAMETERS_PATH", path)
    monkeypatch.setenv("HTTPBUILDER_ENVIRONMENT", "prod")

    s = settings_mod.Settings(user_agent="explicit")

    assert s.environment == "prod"
    assert s.user_agent == "explicit"
