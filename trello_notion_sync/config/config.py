"""
Configuration management
"""
import json
import os
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, asdict
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class TrelloConfig:
    """Trello board settings"""
    api_key: str = ""
    token: str = ""
    board_id: str = ""
    base_url: str = "https://api.trello.com/1"
    timeout: int = 30


@dataclass
class NotionConfig:
    """Notion database settings"""
    api_key: str = ""
    database_id: str = ""
    timeout: int = 30


@dataclass
class SyncConfig:
    """Sync loop settings"""
    poll_interval: int = 60  # seconds
    min_poll_interval: int = 30
    max_poll_interval: int = 900
    retry_delay: int = 5  # wait after a failed pass
    redis_url: Optional[str] = None  # poll cursor store, memory when unset


@dataclass
class WebhookConfig:
    """Webhook receiver settings"""
    secret: Optional[str] = None
    callback_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class LoggingConfig:
    """Logging settings"""
    level: str = "INFO"
    file: str = "sync.log"
    max_size: str = "100 MB"
    backup_count: int = 10


# env var -> (section, field, converter)
ENV_OVERRIDES = {
    "TRELLO_API_KEY": ("trello", "api_key", str),
    "TRELLO_TOKEN": ("trello", "token", str),
    "TRELLO_BOARD_ID": ("trello", "board_id", str),
    "NOTION_API_KEY": ("notion", "api_key", str),
    "NOTION_DATABASE_ID": ("notion", "database_id", str),
    "POLL_INTERVAL": ("sync", "poll_interval", int),
    "RETRY_DELAY": ("sync", "retry_delay", int),
    "REDIS_URL": ("sync", "redis_url", str),
    "WEBHOOK_SECRET": ("webhook", "secret", str),
    "WEBHOOK_CALLBACK_URL": ("webhook", "callback_url", str),
    "WEBHOOK_HOST": ("webhook", "host", str),
    "WEBHOOK_PORT": ("webhook", "port", int),
    "LOG_LEVEL": ("logging", "level", str),
    "LOG_FILE": ("logging", "file", str),
}

REQUIRED_SETTINGS = [
    ("trello", "api_key", "TRELLO_API_KEY"),
    ("trello", "token", "TRELLO_TOKEN"),
    ("trello", "board_id", "TRELLO_BOARD_ID"),
    ("notion", "api_key", "NOTION_API_KEY"),
    ("notion", "database_id", "NOTION_DATABASE_ID"),
]


class Config:
    """Configuration manager"""

    def __init__(self, config_path: Optional[str] = None,
                 env_file: Optional[str] = ".env",
                 use_env: bool = True):
        self.config_path = config_path or self._find_config_file()
        self.env_file = env_file
        self.use_env = use_env
        self._data: Dict[str, Any] = {}

        self.trello: TrelloConfig = TrelloConfig()
        self.notion: NotionConfig = NotionConfig()
        self.sync: SyncConfig = SyncConfig()
        self.webhook: WebhookConfig = WebhookConfig()
        self.logging: LoggingConfig = LoggingConfig()

        self.load()

    def _find_config_file(self) -> str:
        """Look for a config file in the usual places"""
        search_paths = [
            Path.cwd() / "config.json",
            Path.cwd() / "config" / "config.json",
            Path.home() / ".trello_notion_sync" / "config.json",
            Path("/etc/trello_notion_sync/config.json")
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        return str(Path.cwd() / "config.json")

    def load(self) -> None:
        """Load the config file, then apply environment overrides"""
        self._data = {}
        if os.path.exists(self.config_path):
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._data = json.load(f)

        if self.use_env:
            if self.env_file:
                load_dotenv(self.env_file)
            self._apply_env_overrides()

        self._parse_config()

    def _apply_env_overrides(self) -> None:
        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = os.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError:
                raise ValueError(f"{env_name} must be a {convert.__name__}, got {raw!r}")
            self._data.setdefault(section, {})[key] = value

    def _parse_config(self) -> None:
        """Build the section dataclasses"""
        self.trello = TrelloConfig(**self._data.get('trello', {}))
        self.notion = NotionConfig(**self._data.get('notion', {}))
        self.sync = SyncConfig(**self._data.get('sync', {}))
        self.webhook = WebhookConfig(**self._data.get('webhook', {}))
        self.logging = LoggingConfig(**self._data.get('logging', {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trello": asdict(self.trello),
            "notion": asdict(self.notion),
            "sync": asdict(self.sync),
            "webhook": asdict(self.webhook),
            "logging": asdict(self.logging),
        }

    def save(self) -> None:
        """Write the current configuration to disk"""
        directory = os.path.dirname(self.config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=4, ensure_ascii=False)

    def missing_settings(self) -> List[str]:
        """Names of required settings that are empty"""
        missing = []
        for section, key, env_name in REQUIRED_SETTINGS:
            if not getattr(getattr(self, section), key):
                missing.append(env_name)
        return missing

    def validate(self) -> bool:
        """
        Check that the configuration can drive a sync.

        Raises:
            ValueError: when credentials/ids are missing or the poll
                interval is out of range
        """
        missing = self.missing_settings()
        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        self.check_poll_interval(self.sync.poll_interval)
        return True

    def check_poll_interval(self, interval: int) -> None:
        if interval < self.sync.min_poll_interval:
            raise ValueError(
                f"POLL_INTERVAL must be at least {self.sync.min_poll_interval} seconds"
            )
        if interval > self.sync.max_poll_interval:
            raise ValueError(
                f"POLL_INTERVAL must not exceed {self.sync.max_poll_interval} seconds "
                f"({self.sync.max_poll_interval // 60} minutes)"
            )

    def get(self, key: str, default: Any = None) -> Any:
        """Read a dotted key such as 'sync.poll_interval'"""
        value: Any = self.to_dict()

        for k in key.split('.'):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a dotted key and rebuild the sections"""
        keys = key.split('.')
        self._data = self.to_dict()
        data = self._data

        for k in keys[:-1]:
            if k not in data:
                data[k] = {}
            data = data[k]

        data[keys[-1]] = value
        self._parse_config()

    def reload(self) -> None:
        self.load()
