"""
Process-wide loguru configuration for the agent core.

Environment variables (read once, on first use):
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL
- LOG_MODE: "development" logs to stderr, "production" logs to rotated files
- LOG_DIR: Directory for production log files (default: logs)
- LOG_ROTATION: Rotation size or interval (e.g. "10 MB", "1 day")
- LOG_RETENTION: How long rotated files are kept (e.g. "7 days")
- LOG_COMPRESSION: Compression for rotated files (e.g. "zip", "gz")
"""

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_MODE = "development"
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"
DEFAULT_LOG_COMPRESSION = "zip"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[name]}:{function}:{line} - {message}"
)


class LoggerManager:
    """Singleton owning the loguru sinks of the process."""

    _instance: Optional["LoggerManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "LoggerManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if LoggerManager._initialized:
            return
        LoggerManager._initialized = True

        self.log_level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        self.log_mode = os.getenv("LOG_MODE", DEFAULT_LOG_MODE).lower()
        self.log_dir = Path(os.getenv("LOG_DIR", DEFAULT_LOG_DIR))
        self.log_rotation = os.getenv("LOG_ROTATION", DEFAULT_LOG_ROTATION)
        self.log_retention = os.getenv("LOG_RETENTION", DEFAULT_LOG_RETENTION)
        self.log_compression = os.getenv("LOG_COMPRESSION", DEFAULT_LOG_COMPRESSION)

        # Records logged without get_logger() still need extra[name]
        logger.configure(extra={"name": "root"})
        self._configure()

    def _configure(self) -> None:
        # Drops loguru's default stderr handler too
        logger.remove()

        if self.log_mode == "production":
            self._configure_production()
        else:
            self._configure_development()

    def _configure_development(self) -> None:
        """Console output with colors and full tracebacks."""
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=self.log_level,
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    def _configure_production(self) -> None:
        """Rotated log files, with errors duplicated into their own file."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

        for filename, level in (
            ("openmanus_{time:YYYY-MM-DD}.log", self.log_level),
            ("openmanus_error_{time:YYYY-MM-DD}.log", "ERROR"),
        ):
            logger.add(
                self.log_dir / filename,
                format=FILE_FORMAT,
                level=level,
                rotation=self.log_rotation,
                retention=self.log_retention,
                compression=self.log_compression,
                encoding="utf-8",
                enqueue=True,
            )

    def get_logger(self, name: Optional[str] = None):
        """Return the shared logger bound with a ``name`` (defaults to "root")."""
        return logger.bind(name=name or "root")

    def set_level(self, level: str) -> None:
        """Re-create the sinks at a new level."""
        self.log_level = level.upper()
        self._configure()


def get_logger(name: Optional[str] = None):
    """
    Get a logger for a module.

    Example:
        from openmanus.utils.logger import get_logger

        log = get_logger(__name__)
        log.info("Agent ready")
    """
    return LoggerManager().get_logger(name)


def set_log_level(level: str) -> None:
    """Change the log level at runtime."""
    LoggerManager().set_level(level)


__all__ = ["LoggerManager", "get_logger", "set_log_level"]
