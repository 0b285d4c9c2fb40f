"""Tests for configuration loading and validation."""

import pytest
from pathlib import Path

from tracksync.config import DEFAULT_BASE_URL, SyncConfig


ENV_VARS = [
    "CORREIOS_BASE_URL", "REQUEST_TIMEOUT", "BATCH_SIZE", "BATCH_DELAY_SECONDS",
    "TOKEN_SAFETY_MARGIN_SECONDS", "STORE_PATH", "SYNC_TIMES", "SYNC_ENABLED",
    "LOG_LEVEL", "LOG_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # setenv first so values loaded by dotenv are also undone at teardown
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


class TestFromEnv:
    """Tests for SyncConfig.from_env()."""

    def test_defaults(self):
        config = SyncConfig.from_env()

        assert config.correios_base_url == DEFAULT_BASE_URL
        assert config.batch_size == 50
        assert config.batch_delay_seconds == 1.0
        assert config.token_safety_margin_seconds == 300
        assert config.sync_times == ["08:00", "12:00"]
        assert config.sync_enabled is True
        assert config.validate() == []

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CORREIOS_BASE_URL", "https://apihom.correios.com.br/")
        monkeypatch.setenv("BATCH_SIZE", "20")
        monkeypatch.setenv("BATCH_DELAY_SECONDS", "0.5")
        monkeypatch.setenv("SYNC_TIMES", "07:30, 18:00")
        monkeypatch.setenv("SYNC_ENABLED", "no")
        monkeypatch.setenv("STORE_PATH", "/tmp/orders.json")

        config = SyncConfig.from_env()

        assert config.correios_base_url == "https://apihom.correios.com.br"
        assert config.batch_size == 20
        assert config.batch_delay_seconds == 0.5
        assert config.sync_times == ["07:30", "18:00"]
        assert config.sync_enabled is False
        assert config.store_path == Path("/tmp/orders.json")

    def test_batch_size_capped_at_carrier_limit(self, monkeypatch):
        monkeypatch.setenv("BATCH_SIZE", "200")

        assert SyncConfig.from_env().batch_size == 50

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("REQUEST_TIMEOUT=12\nLOG_LEVEL=DEBUG\n", encoding="utf-8")

        config = SyncConfig.from_env(str(env_file))

        assert config.request_timeout == 12.0
        assert config.log_level == "DEBUG"


class TestValidate:
    """Tests for SyncConfig.validate()."""

    @pytest.mark.parametrize("overrides,fragment", [
        ({"correios_base_url": "api.correios.com.br"}, "CORREIOS_BASE_URL"),
        ({"batch_size": 0}, "BATCH_SIZE"),
        ({"batch_size": 51}, "BATCH_SIZE"),
        ({"batch_delay_seconds": -1}, "BATCH_DELAY_SECONDS"),
        ({"request_timeout": 0}, "REQUEST_TIMEOUT"),
        ({"sync_times": ["8h"]}, "Invalid sync time"),
        ({"sync_times": ["24:00"]}, "Invalid sync time"),
    ])
    def test_errors(self, overrides, fragment):
        errors = SyncConfig(**overrides).validate()

        assert len(errors) == 1
        assert fragment in errors[0]

    def test_ensure_directories(self, tmp_path):
        config = SyncConfig(
            store_path=tmp_path / "data" / "store.json",
            log_file=str(tmp_path / "logs" / "tracksync.log"),
        )

        config.ensure_directories()

        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "logs").is_dir()
