"""Tests for configuration loading."""

import json

import pytest

from mailqueue.config import Settings, load_settings
from mailqueue.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    load_settings.cache_clear()
    monkeypatch.chdir(tmp_path)
    yield
    load_settings.cache_clear()


class TestSettings:
    """Tests for Settings defaults and validation."""

    def test_defaults(self):
        settings = Settings()

        assert settings.transport == "smtp"
        assert settings.database.url == "sqlite:///mailqueue.db"
        assert settings.queue.processing_interval_minutes == 2
        assert settings.queue.batch_size == 10
        assert settings.queue.max_retries == 3
        assert settings.queue.default_priority == 2
        assert settings.queue.backoff_base_minutes == 5
        assert settings.smtp.port == 587

    def test_transport_is_normalised(self):
        assert Settings(transport="Console").transport == "console"

    def test_unknown_transport_rejected(self):
        with pytest.raises(ValueError):
            Settings(transport="carrier-pigeon")

    def test_nested_environment_variables(self, monkeypatch):
        monkeypatch.setenv("MAILQUEUE_QUEUE__BATCH_SIZE", "25")
        monkeypatch.setenv("MAILQUEUE_SMTP__HOST", "mail.example.com")

        settings = Settings()

        assert settings.queue.batch_size == 25
        assert settings.smtp.host == "mail.example.com"


class TestLoadSettings:
    """Tests for load_settings."""

    def test_no_files(self):
        settings = load_settings()
        assert settings.app_name == "mailqueue"

    def test_yaml_config_file(self, tmp_path):
        (tmp_path / "config.yaml").write_text(
            "transport: console\nqueue:\n  batch_size: 50\n  max_retries: 5\n"
        )

        settings = load_settings()

        assert settings.transport == "console"
        assert settings.queue.batch_size == 50
        assert settings.queue.max_retries == 5

    def test_json_config_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"database": {"url": "sqlite://"}}))

        settings = load_settings(config_file=str(path))

        assert settings.database.url == "sqlite://"

    def test_environment_overrides_config_file(self, tmp_path, monkeypatch):
        (tmp_path / "config.yaml").write_text("queue:\n  batch_size: 50\n")
        monkeypatch.setenv("MAILQUEUE_QUEUE__BATCH_SIZE", "7")

        assert load_settings().queue.batch_size == 7

    def test_env_file(self, tmp_path, monkeypatch):
        # Register the variable so load_dotenv's write is undone after the test
        monkeypatch.setenv("MAILQUEUE_APP_NAME", "placeholder")
        monkeypatch.delenv("MAILQUEUE_APP_NAME")
        (tmp_path / ".env").write_text("MAILQUEUE_APP_NAME=from-dotenv\n")

        assert load_settings().app_name == "from-dotenv"

    def test_unsupported_config_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("transport = 'console'\n")

        with pytest.raises(ConfigurationError):
            load_settings(config_file=str(path))

    def test_invalid_values(self, tmp_path):
        (tmp_path / "config.yaml").write_text("queue:\n  batch_size: 0\n")

        with pytest.raises(ConfigurationError):
            load_settings()
