"""
Sync service: wires the clients, the change detector and the engine
"""
import asyncio
import time
from typing import Dict, Any, Optional
from datetime import datetime
from loguru import logger
import redis
from redis import asyncio as aioredis

from ..config.config import Config
from ..models import SyncStats
from ..notion.client import NotionClient
from ..trello.client import TrelloClient
from ..trello.change_detector import ChangeDetector, ChangeSummary
from .sync_engine import SyncEngine


class SyncService:
    """Runs reconciliation passes when the board changes"""

    def __init__(self, config: Config,
                 engine: Optional[SyncEngine] = None,
                 detector: Optional[ChangeDetector] = None):
        self.config = config
        self.running = False
        self.syncing = False
        self._poll_task: Optional[asyncio.Task] = None

        self.stats: Dict[str, Any] = {
            'passes': 0,
            'failed_passes': 0,
            'skipped_triggers': 0,
            'last_stats': None,
            'last_sync_at': None,
            'start_time': None
        }

        self.trello_client: Optional[TrelloClient] = None
        self.notion_client: Optional[NotionClient] = None
        self.redis_client: Optional[aioredis.Redis] = None
        self.engine = engine
        self.detector = detector
        if self.engine is None or self.detector is None:
            self._init_components()

    def _init_components(self) -> None:
        """Build clients from the configuration"""
        self.config.validate()

        self.trello_client = TrelloClient(
            self.config.trello.api_key,
            self.config.trello.token,
            self.config.trello.board_id,
            base_url=self.config.trello.base_url,
            timeout=self.config.trello.timeout,
        )
        self.notion_client = NotionClient(
            self.config.notion.api_key,
            self.config.notion.database_id,
            timeout=self.config.notion.timeout,
        )

        # connection is checked when polling starts
        if self.config.sync.redis_url:
            self.redis_client = aioredis.Redis.from_url(self.config.sync.redis_url, decode_responses=True)

        if self.engine is None:
            self.engine = SyncEngine(self.trello_client, self.notion_client)
        if self.detector is None:
            self.detector = ChangeDetector(self.trello_client, self.redis_client)

        logger.info(
            f"SyncService initialized (poll interval {self.config.sync.poll_interval}s, "
            f"allowed {self.config.sync.min_poll_interval}s-{self.config.sync.max_poll_interval}s)"
        )

    async def run_once(self) -> SyncStats:
        """Run a single pass; errors propagate"""
        started = time.monotonic()
        stats = await self.engine.perform_sync()
        self._record_pass(stats, time.monotonic() - started)
        return stats

    async def handle_changes(self, summary: ChangeSummary) -> Optional[SyncStats]:
        """
        Run a full pass in response to detected changes.

        A trigger that arrives while a pass is in flight is dropped. After a
        failed pass the guard stays held for ``retry_delay`` seconds.

        Returns:
            Stats of the pass, None when skipped or failed
        """
        if self.syncing:
            self.stats['skipped_triggers'] += 1
            logger.info(
                f"Sync already in progress, skipping this cycle "
                f"({summary.changes_detected} pending changes)"
            )
            return None

        self.syncing = True
        try:
            logger.info(
                f"Changes detected, triggering full sync: {summary.changes_detected} "
                f"changes {summary.action_types}, since {summary.last_check.isoformat()}"
            )
            stats = await self.run_once()
            logger.info(f"Full sync completed, {summary.changes_detected} changes processed")
            return stats

        except Exception as e:
            self.stats['failed_passes'] += 1
            logger.error(f"Full sync failed: {e}")
            await self._handle_sync_failure(e)
            return None

        finally:
            self.syncing = False

    async def _handle_sync_failure(self, error: Exception) -> None:
        """Fixed delay before the next pass may start"""
        logger.warning(
            f"Waiting {self.config.sync.retry_delay}s after sync failure: {error}"
        )
        await asyncio.sleep(self.config.sync.retry_delay)

    def _record_pass(self, stats: SyncStats, duration: float) -> None:
        self.stats['passes'] += 1
        self.stats['last_stats'] = stats.to_dict()
        self.stats['last_sync_at'] = datetime.now()
        logger.info(f"Sync pass took {duration * 1000:.0f}ms: {stats.to_dict()}")

    async def start(self) -> None:
        """Start polling the board in the background"""
        if self.running:
            logger.warning("Sync service is already running")
            return

        logger.info(f"Starting sync service for board {self.config.trello.board_id}")
        await self._connect_cursor_store()
        self.running = True
        self.stats['start_time'] = datetime.now()
        self._poll_task = asyncio.create_task(
            self.detector.run(self.handle_changes, self.config.sync.poll_interval)
        )
        logger.info("Sync service started successfully")

    async def _connect_cursor_store(self) -> None:
        """Check Redis, falling back to an in-memory poll cursor"""
        if self.redis_client is None:
            return
        try:
            await self.redis_client.ping()
            logger.info("Redis connected successfully")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}, using memory cursor")
            await self.redis_client.aclose()
            self.redis_client = None
            self.detector.use_memory()

    async def stop(self) -> None:
        """Stop polling; a pass in flight runs to completion"""
        if not self.running:
            logger.warning("Sync service not running")
            return

        logger.info("Stopping sync service...")
        self.running = False
        self.detector.stop()
        if self._poll_task is not None:
            await self._poll_task
            self._poll_task = None
        logger.info("Sync service stopped")

    async def close(self) -> None:
        """Release HTTP and Redis connections"""
        if self.trello_client is not None:
            await self.trello_client.aclose()
        if self.notion_client is not None:
            await self.notion_client.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None

    async def update_poll_interval(self, seconds: int) -> None:
        """Change the poll interval, restarting the loop when running"""
        self.config.check_poll_interval(seconds)

        was_running = self.running
        if was_running:
            await self.stop()

        old_interval = self.config.sync.poll_interval
        self.config.sync.poll_interval = seconds
        logger.info(f"Poll interval updated: {old_interval}s -> {seconds}s")

        if was_running:
            await self.start()

    def get_status(self) -> Dict[str, Any]:
        uptime = None
        if self.stats['start_time']:
            uptime = (datetime.now() - self.stats['start_time']).total_seconds()

        return {
            'running': self.running,
            'syncing': self.syncing,
            'uptime_seconds': uptime,
            'sync_stats': self.stats,
            'configuration': {
                'poll_interval': self.config.sync.poll_interval,
                'min_poll_interval': self.config.sync.min_poll_interval,
                'max_poll_interval': self.config.sync.max_poll_interval,
                'retry_delay': self.config.sync.retry_delay,
                'log_level': self.config.logging.level,
            },
            'polling': self.detector.get_status(self.config.sync.poll_interval),
        }
