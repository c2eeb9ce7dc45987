"""
Configuration tests
"""
import json

import pytest

from trello_notion_sync.config.config import Config, ENV_OVERRIDES


REQUIRED_ENV = {
    "TRELLO_API_KEY": "key",
    "TRELLO_TOKEN": "token",
    "TRELLO_BOARD_ID": "board",
    "NOTION_API_KEY": "secret",
    "NOTION_DATABASE_ID": "database",
}


class TestConfig:
    """Configuration loading and validation"""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ENV_OVERRIDES:
            monkeypatch.delenv(name, raising=False)

    @pytest.fixture
    def config_path(self, tmp_path) -> str:
        return str(tmp_path / "config.json")

    def _config(self, config_path: str) -> Config:
        return Config(config_path, env_file=None)

    def test_defaults(self, config_path):
        config = self._config(config_path)

        assert config.sync.poll_interval == 60
        assert config.sync.retry_delay == 5
        assert config.sync.redis_url is None
        assert config.webhook.port == 3000
        assert config.trello.base_url == "https://api.trello.com/1"

    def test_env_overrides(self, config_path, monkeypatch):
        for name, value in REQUIRED_ENV.items():
            monkeypatch.setenv(name, value)
        monkeypatch.setenv("POLL_INTERVAL", "120")
        monkeypatch.setenv("WEBHOOK_PORT", "8080")

        config = self._config(config_path)

        assert config.trello.board_id == "board"
        assert config.notion.database_id == "database"
        assert config.sync.poll_interval == 120
        assert config.webhook.port == 8080
        assert config.validate() is True

    def test_env_overrides_file(self, config_path, monkeypatch):
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump({"trello": {"board_id": "from-file"}, "sync": {"poll_interval": 90}}, f)
        monkeypatch.setenv("TRELLO_BOARD_ID", "from-env")

        config = self._config(config_path)

        assert config.trello.board_id == "from-env"
        assert config.sync.poll_interval == 90

    def test_invalid_number(self, config_path, monkeypatch):
        monkeypatch.setenv("POLL_INTERVAL", "soon")

        with pytest.raises(ValueError, match="POLL_INTERVAL"):
            self._config(config_path)

    def test_missing_credentials(self, config_path, monkeypatch):
        monkeypatch.setenv("TRELLO_API_KEY", "key")

        config = self._config(config_path)

        with pytest.raises(ValueError, match="Missing required configuration") as exc:
            config.validate()
        assert "TRELLO_TOKEN" in str(exc.value)
        assert "NOTION_DATABASE_ID" in str(exc.value)
        assert "TRELLO_API_KEY" not in str(exc.value)

    @pytest.mark.parametrize("interval, message", [
        (29, "at least 30 seconds"),
        (901, "must not exceed 900 seconds"),
    ])
    def test_poll_interval_bounds(self, config_path, monkeypatch, interval, message):
        for name, value in REQUIRED_ENV.items():
            monkeypatch.setenv(name, value)
        monkeypatch.setenv("POLL_INTERVAL", str(interval))

        config = self._config(config_path)

        with pytest.raises(ValueError, match=message):
            config.validate()

    def test_save_and_get(self, config_path):
        config = self._config(config_path)
        config.set("sync.poll_interval", 300)
        config.save()

        with open(config_path, encoding="utf-8") as f:
            saved = json.load(f)

        assert saved["sync"]["poll_interval"] == 300
        assert config.get("sync.poll_interval") == 300
        assert config.get("sync.missing", "fallback") == "fallback"
