"""Webhook receiver"""

from .server import create_app, should_trigger_sync

__all__ = ["create_app", "should_trigger_sync"]
