"""
Logging setup
"""
import sys
from pathlib import Path
from loguru import logger

from ..config.config import LoggingConfig


def setup_logger(config: LoggingConfig) -> None:
    """Configure loguru sinks"""
    logger.remove()

    logger.add(
        sys.stdout,
        level=config.level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True
    )

    if not config.file:
        logger.info(f"Logger initialized with level: {config.level}")
        return

    logger.add(
        config.file,
        level=config.level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation=config.max_size,
        retention=config.backup_count,
        compression="zip",
        encoding="utf-8"
    )

    # errors get their own file and are kept twice as long
    error_log_file = Path(config.file).with_suffix('.error.log')
    logger.add(
        str(error_log_file),
        level="ERROR",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation=config.max_size,
        retention=config.backup_count * 2,
        compression="zip",
        encoding="utf-8"
    )

    logger.info(f"Logger initialized with level: {config.level}")
