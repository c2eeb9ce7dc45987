"""Notion client"""

from .client import DatabaseClient, NotionClient

__all__ = ["DatabaseClient", "NotionClient"]
