"""
Logging configuration using loguru.
"""
import sys
from pathlib import Path
from loguru import logger
from subwatch.config import settings
from subwatch.middleware.correlation import correlation_id_filter


def setup_logger():
    """Configure loguru sinks: stderr always, rotating file when log_dir is set."""
    logger.remove()

    level = "DEBUG" if settings.debug else settings.log_level.upper()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <dim>{extra[correlation_id]}</dim> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
        filter=correlation_id_filter,
    )

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "subwatch.log",
            rotation="10 MB",
            retention="7 days",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[correlation_id]} | {name}:{function}:{line} - {message}",
            filter=correlation_id_filter,
        )

    logger.info(f"Logger initialized (level={level})")
