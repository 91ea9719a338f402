"""Loguru configuration."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

from src.config import LoggingConfig

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(config: LoggingConfig, console: bool = True) -> Path:
    """Replace the default handler with stderr and a rotating file sink; returns the log file path."""
    logger.remove()
    if console:
        logger.add(sys.stderr, level=config.level, format=LOG_FORMAT)

    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "stopboard.log"
    logger.add(
        log_path,
        level=config.level,
        format=LOG_FORMAT,
        rotation="10 MB",
        retention="14 days",
        encoding="utf-8",
    )
    logger.info("Logging configured with level: {}", config.level)
    return log_path


__all__ = ["LOG_FORMAT", "setup_logging"]
