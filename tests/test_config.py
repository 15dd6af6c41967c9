"""Settings loading"""

from pathlib import Path

import pytest

from sesmine.core.config import Settings, load_settings
from sesmine.utils.exceptions import ConfigError


def test_defaults_when_no_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SESMINE_CONFIG", raising=False)
    monkeypatch.delenv("SESMINE_DATA_DIR", raising=False)
    settings = load_settings()
    assert settings.sessions.timeout_hours == 24
    assert settings.sessions.refresh_interval_minutes == 15
    assert settings.credentials.min_length == 8
    assert settings.notifications.backend == "log"
    assert settings.data_path == Path("data")


def test_env_substitution(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "storage:\n"
        "  data_dir: \"${TEST_SESMINE_DIR:/srv/default}\"\n"
        "notifications:\n"
        "  backend: \"${TEST_SESMINE_BACKEND:log}\"\n"
        "  webhook_url: \"${TEST_SESMINE_HOOK}\"\n",
        encoding="utf-8",
    )
    monkeypatch.delenv("SESMINE_DATA_DIR", raising=False)
    monkeypatch.setenv("TEST_SESMINE_BACKEND", "webhook")
    monkeypatch.setenv("TEST_SESMINE_HOOK", "https://hooks.example.com/sesmine")
    monkeypatch.delenv("TEST_SESMINE_DIR", raising=False)

    settings = load_settings(path)
    assert settings.storage.data_dir == "/srv/default"
    assert settings.notifications.backend == "webhook"
    assert settings.notifications.webhook_url == "https://hooks.example.com/sesmine"


def test_data_dir_override(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text("storage:\n  data_dir: elsewhere\n", encoding="utf-8")
    monkeypatch.setenv("SESMINE_DATA_DIR", str(tmp_path / "data"))
    settings = load_settings(path)
    assert settings.data_path == tmp_path / "data"


def test_config_env_var_selects_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("sessions:\n  timeout_hours: 2\n", encoding="utf-8")
    monkeypatch.setenv("SESMINE_CONFIG", str(path))
    assert load_settings().sessions.timeout_hours == 2


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "missing.yaml")


def test_invalid_values_raise(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("notifications:\n  backend: carrier-pigeon\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid settings"):
        load_settings(path)


def test_non_mapping_file_raises(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_settings(path)


def test_settings_model_defaults():
    settings = Settings()
    assert settings.seed_admin.email is None
    assert settings.sessions.cookie_name == "sesmine_session"
