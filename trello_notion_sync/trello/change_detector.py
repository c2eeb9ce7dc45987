"""
Trello board change detector
"""
import asyncio
from typing import Dict, List, Any, Optional, Callable, Awaitable
from datetime import datetime, timezone
from dataclasses import dataclass, field
from redis import asyncio as aioredis
from loguru import logger

from .client import TrelloClient


# actions that can change what the sync mirrors
WATCHED_ACTIONS = ["updateCard", "createCard", "updateCustomFieldItem"]
ACTION_LIMIT = 100


@dataclass
class ChangeSummary:
    """What the detector saw since the previous check"""
    changes_detected: int
    last_check: datetime
    actions: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def action_types(self) -> List[str]:
        return [action.get("type", "") for action in self.actions]


ChangeCallback = Callable[[ChangeSummary], Awaitable[Any]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChangeDetector:
    """Polls the board activity log and reports batches of changes"""

    def __init__(self, trello_client: TrelloClient,
                 redis_client: Optional[aioredis.Redis] = None):
        self.trello = trello_client
        self.redis = redis_client
        self.use_redis = redis_client is not None
        self.running = False
        self._wakeup: Optional[asyncio.Event] = None

        # last known cursor; the only store when Redis is not available
        self._last_check: Optional[datetime] = None if self.use_redis else _now()

    def _cursor_key(self) -> str:
        return f"trello_sync:last_check:{self.trello.board_id}"

    def use_memory(self) -> None:
        """Drop the Redis store and keep the cursor in memory"""
        self.redis = None
        self.use_redis = False
        if self._last_check is None:
            self._last_check = _now()

    async def get_last_check(self) -> Optional[datetime]:
        """Point in time the next check starts from"""
        if self.use_redis:
            value = await self.redis.get(self._cursor_key())
            if value is None:
                return None
            if isinstance(value, bytes):
                value = value.decode("utf-8")
            self._last_check = datetime.fromisoformat(value)
        return self._last_check

    async def _save_last_check(self, moment: datetime) -> None:
        if self.use_redis:
            await self.redis.set(self._cursor_key(), moment.isoformat())
        self._last_check = moment

    async def check_for_changes(self, callback: ChangeCallback) -> int:
        """
        Fetch board actions since the last check and report them.

        The cursor moves to "now" once the callback returns, whatever its
        outcome, so a burst of changes triggers a single callback.

        Returns:
            Number of actions found
        """
        since = await self.get_last_check()
        if since is None:
            since = _now()
            await self._save_last_check(since)
        logger.debug(f"Checking for changes since {since.isoformat()}")

        actions = await self.trello.list_actions(since, WATCHED_ACTIONS, ACTION_LIMIT)

        try:
            if actions:
                logger.info(f"Found {len(actions)} changes since last sync")
                await callback(ChangeSummary(
                    changes_detected=len(actions),
                    last_check=since,
                    actions=[
                        {"id": a.get("id"), "type": a.get("type"), "date": a.get("date")}
                        for a in actions
                    ],
                ))
            else:
                logger.debug("No changes detected")
        finally:
            await self._save_last_check(_now())

        return len(actions)

    async def run(self, callback: ChangeCallback, interval: float) -> None:
        """Poll until stop() is called"""
        if self.running:
            logger.warning("Polling already running")
            return

        self.running = True
        self._wakeup = asyncio.Event()
        logger.info(f"Starting polling every {interval}s for board {self.trello.board_id}")

        while self.running:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            if not self.running:
                break

            try:
                await self.check_for_changes(callback)
            except Exception as e:
                logger.error(f"Polling check failed: {e}")

        logger.info("Polling stopped")

    def stop(self) -> None:
        self.running = False
        if self._wakeup is not None:
            self._wakeup.set()

    async def reset(self) -> None:
        """Restart the cursor from now"""
        await self._save_last_check(_now())
        logger.info(f"Reset poll cursor for board {self.trello.board_id}")

    def get_status(self, interval: Optional[float] = None) -> Dict[str, Any]:
        """Status snapshot; the cursor is the last one read or written"""
        return {
            "running": self.running,
            "board_id": self.trello.board_id,
            "last_check": self._last_check.isoformat() if self._last_check else None,
            "interval": interval,
            "cursor_store": "redis" if self.use_redis else "memory",
        }
