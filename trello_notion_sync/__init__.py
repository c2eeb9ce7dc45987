"""
Bidirectional Trello board / Notion database sync
"""

__version__ = "1.0.0"

from .core.sync_engine import SyncEngine
from .core.sync_service import SyncService
from .config.config import Config

__all__ = ["SyncService", "SyncEngine", "Config"]
