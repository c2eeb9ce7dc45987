"""Sync core"""

from .sync_engine import SyncEngine
from .sync_service import SyncService
from .field_mapper import (
    extract_custom_field_values,
    to_notion_properties,
    to_trello_update,
    values_differ,
)

__all__ = [
    "SyncEngine",
    "SyncService",
    "extract_custom_field_values",
    "to_notion_properties",
    "to_trello_update",
    "values_differ",
]
