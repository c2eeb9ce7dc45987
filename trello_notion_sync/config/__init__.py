"""Configuration"""

from .config import (
    Config,
    TrelloConfig,
    NotionConfig,
    SyncConfig,
    WebhookConfig,
    LoggingConfig,
)

__all__ = [
    "Config",
    "TrelloConfig",
    "NotionConfig",
    "SyncConfig",
    "WebhookConfig",
    "LoggingConfig",
]
