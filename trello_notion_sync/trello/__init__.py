"""Trello client"""

from .client import BoardClient, TrelloClient
from .change_detector import ChangeDetector, ChangeSummary

__all__ = ["BoardClient", "TrelloClient", "ChangeDetector", "ChangeSummary"]
