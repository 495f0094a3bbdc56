"""Tests for config loader behavior."""

from __future__ import annotations

import pytest

from backend.app.config import load_settings

pytestmark = [pytest.mark.config]

OVERRIDE_ENV = ("DATABASE_URL", "STORAGE_DIR", "ANTHROPIC_API_KEY", "ANTHROPIC_MODEL")


@pytest.fixture(autouse=True)
def _clear_overrides(monkeypatch):
    for name in OVERRIDE_ENV:
        monkeypatch.delenv(name, raising=False)


def test_load_settings_falls_back_to_defaults(monkeypatch, tmp_path):
    """Missing profiles should default to the built-in dev configuration."""

    monkeypatch.setenv("FIELDNOTE_CONFIG_PROFILE", "missing")
    monkeypatch.setenv("FIELDNOTE_CONFIG_DIR", str(tmp_path))
    settings = load_settings()

    assert settings.environment == "dev"
    assert settings.database_url.endswith("/fieldnote")
    assert settings.storage.images_dir == "images"
    assert settings.classifier.model == "claude-opus-4-5"
    assert settings.classifier.api_key is None
    assert settings.classifier.max_tokens == 512
    assert settings.retention.restore_window_seconds == 3600
    assert settings.retention.sweep_interval_seconds == 600
    assert settings.api.max_upload_bytes == 10 * 1024 * 1024
    assert settings.api.cors_origins == ["*"]


def test_load_settings_reads_yaml_profile(monkeypatch, tmp_path):
    """Config loader should parse YAML profiles section by section."""

    profiles_dir = tmp_path / "profiles"
    profiles_dir.mkdir()
    (profiles_dir / "staging.yaml").write_text(
        """
environment: staging

database:
  url: "postgresql+psycopg://postgres:pw@db:5432/custom"

storage:
  root: "/srv/fieldnote"

classifier:
  endpoint: "https://llm.internal/"
  model: "claude-custom"
  timeout_seconds: 5

retention:
  sweep_interval_seconds: 60
  sweeper_enabled: false

api:
  max_upload_bytes: 2048
  cors_origins: "http://localhost:5173"

logging:
  level: DEBUG
""",
        encoding="utf-8",
    )

    settings = load_settings(profile="staging", config_dir=profiles_dir)

    assert settings.environment == "staging"
    assert settings.database_url.endswith("custom")
    assert str(settings.storage_root) == "/srv/fieldnote"
    assert settings.classifier.endpoint == "https://llm.internal"
    assert settings.classifier.model == "claude-custom"
    assert settings.classifier.timeout_seconds == 5.0
    assert settings.retention.sweep_interval_seconds == 60
    assert settings.retention.restore_window_seconds == 3600
    assert settings.retention.sweeper_enabled is False
    assert settings.api.max_upload_bytes == 2048
    assert settings.api.cors_origins == ["http://localhost:5173"]
    assert settings.logging == {"level": "DEBUG"}


def test_environment_overrides_win(monkeypatch, tmp_path):
    monkeypatch.setenv("FIELDNOTE_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "media"))
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("ANTHROPIC_MODEL", "claude-env")

    settings = load_settings()

    assert settings.database_url == "sqlite+pysqlite:///:memory:"
    assert settings.storage_root == tmp_path / "media"
    assert settings.classifier.api_key == "sk-test"
    assert settings.classifier.model == "claude-env"


def test_invalid_profile_raises(tmp_path):
    (tmp_path / "broken.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(RuntimeError):
        load_settings(profile="broken", config_dir=tmp_path)
