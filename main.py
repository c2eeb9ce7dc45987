#!/usr/bin/env python3
"""
Trello / Notion bidirectional sync service
Entry point
"""
import sys
import signal
import asyncio
import argparse
from pathlib import Path
from typing import Optional
from loguru import logger

# make the package importable when run from a checkout
sys.path.insert(0, str(Path(__file__).parent))

from trello_notion_sync.config.config import Config
from trello_notion_sync.core.sync_service import SyncService
from trello_notion_sync.monitor.logger import setup_logger

STATUS_INTERVAL = 60


class SyncApplication:
    """Main application"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config: Optional[Config] = None
        self.sync_service: Optional[SyncService] = None
        self.running = False
        self._stopped: Optional[asyncio.Event] = None

    def _signal_handler(self, signum):
        logger.info(f"Received signal {signum}, shutting down...")
        self.running = False
        if self._stopped is not None:
            self._stopped.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._signal_handler, signum)
            except NotImplementedError:
                # Windows: fall back to KeyboardInterrupt
                pass

    def initialize(self):
        """Load configuration and build the service"""
        try:
            self.config = Config(self.config_path)

            setup_logger(self.config.logging)

            logger.info("=" * 60)
            logger.info("Trello <-> Notion Sync Service")
            logger.info("=" * 60)
            logger.info(f"Config file: {self.config.config_path}")
            logger.info(f"Log level: {self.config.logging.level}")
            logger.info(f"Poll interval: {self.config.sync.poll_interval}s")

            self.sync_service = SyncService(self.config)

            logger.info("Application initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize application: {e}")
            raise

    async def run_once(self) -> int:
        """One pass, returns the process exit code"""
        try:
            stats = await self.sync_service.run_once()
        finally:
            await self.sync_service.close()

        summary = stats.to_dict()
        print(
            f"Trello → Notion: {summary['trello_to_notion']['created']} created, "
            f"{summary['trello_to_notion']['updated']} updated"
        )
        print(
            f"Notion → Trello: {summary['notion_to_trello']['created']} created, "
            f"{summary['notion_to_trello']['updated']} updated"
        )
        print(f"Errors: {summary['errors']}")
        return 1 if stats.errors > 0 else 0

    async def start(self):
        """Poll the board until a shutdown signal arrives"""
        if not self.sync_service:
            raise RuntimeError("Application not initialized")

        self._stopped = asyncio.Event()
        self._install_signal_handlers()

        try:
            self.running = True
            await self.sync_service.start()

            logger.info("Application started, press Ctrl+C to stop")

            while self.running:
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=STATUS_INTERVAL)
                except asyncio.TimeoutError:
                    self._print_status()

        except Exception as e:
            logger.error(f"Application error: {e}")
            raise
        finally:
            await self.stop()

    async def serve_webhook(self):
        """Serve the Trello webhook endpoint"""
        import uvicorn
        from trello_notion_sync.webhook.server import create_app

        app = create_app(
            self.sync_service,
            secret=self.config.webhook.secret,
            callback_url=self.config.webhook.callback_url,
        )
        server = uvicorn.Server(uvicorn.Config(
            app,
            host=self.config.webhook.host,
            port=self.config.webhook.port,
            log_level=self.config.logging.level.lower(),
        ))

        logger.info(
            f"Webhook server listening on {self.config.webhook.host}:{self.config.webhook.port}"
        )
        try:
            await server.serve()
        finally:
            await self.sync_service.close()

    async def stop(self):
        self.running = False

        if self.sync_service:
            if self.sync_service.running:
                await self.sync_service.stop()
            await self.sync_service.close()

        logger.info("Application stopped")

    def _print_status(self):
        if not self.sync_service:
            return

        status = self.sync_service.get_status()

        logger.info("-" * 50)
        logger.info("Sync Service Status")
        logger.info("-" * 50)
        logger.info(f"Running: {status['running']}, syncing: {status['syncing']}")
        if status['uptime_seconds'] is not None:
            logger.info(f"Uptime: {status['uptime_seconds']:.0f} seconds")

        sync_stats = status['sync_stats']
        logger.info(
            f"Passes: {sync_stats['passes']} ok, {sync_stats['failed_passes']} failed, "
            f"{sync_stats['skipped_triggers']} skipped triggers"
        )
        if sync_stats['last_stats']:
            logger.info(f"Last pass: {sync_stats['last_stats']}")

        polling = status['polling']
        logger.info(f"Last check: {polling['last_check']} ({polling['cursor_store']})")
        logger.info("-" * 50)


def main():
    parser = argparse.ArgumentParser(
        description='Trello / Notion Bidirectional Sync Service'
    )
    parser.add_argument(
        '-c', '--config',
        help='Path to configuration file',
        default=None
    )
    parser.add_argument(
        '--init',
        action='store_true',
        help='Initialize configuration file'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single sync pass and exit'
    )
    parser.add_argument(
        '--webhook',
        action='store_true',
        help='Serve the Trello webhook endpoint instead of polling'
    )
    parser.add_argument(
        '--check-config',
        action='store_true',
        help='Validate the configuration and exit'
    )

    args = parser.parse_args()

    if args.init:
        config = Config(args.config)
        config.save()
        print(f"Configuration file created: {config.config_path}")
        print("Please edit the configuration file and run the service again")
        return

    if args.check_config:
        config = Config(args.config)
        try:
            config.validate()
        except ValueError as e:
            print(f"Configuration invalid: {e}")
            sys.exit(1)
        print(f"Configuration OK ({config.config_path})")
        return

    app = SyncApplication(args.config)
    try:
        app.initialize()
    except Exception:
        sys.exit(1)

    try:
        if args.once:
            sys.exit(asyncio.run(app.run_once()))
        elif args.webhook:
            asyncio.run(app.serve_webhook())
        else:
            asyncio.run(app.start())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Service failed: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
