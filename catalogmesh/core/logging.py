"""
Structured Logging for catalogmesh.

Every module obtains its logger from here rather than calling the stdlib
directly:

    from catalogmesh.core.logging import get_logger
    logger = get_logger(__name__)
    logger.info("Directory fetched", peer=url, status=200)

Extra keyword arguments are rendered as ``key=value`` pairs after the
message, so peer URLs and status codes are greppable in the scheduler logs.

Logger Types
------------
**StructuredLogger**
    Wraps a stdlib logger and renders keyword arguments as fields:

        logger = get_logger(__name__)
        logger.warning("Peer unreachable", peer=url)

**CycleLogger**
    Times one background cycle (directory sync or broadcast) and logs its
    outcome counters when it finishes:

        clog = CycleLogger("directory_sync")
        clog.start()
        clog.finish(success=True, contacted=3, added=1)
"""

import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True


class StructuredLogger:
    """
    Structured logger with context support.

    Wraps a stdlib logger and appends bound context plus per-call fields
    to each message.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self.config = config or _ConfigHolder.get_config()
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the logger."""
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        self.logger.setLevel(level)
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            self.config.format,
            datefmt=self.config.date_format,
        )

        if self.config.console:
            try:
                from rich.logging import RichHandler

                console_handler: logging.Handler = RichHandler(
                    show_time=True,
                    show_path=False,
                    markup=False,
                    rich_tracebacks=True,
                )
            except ImportError:
                console_handler = logging.StreamHandler(sys.stderr)
                console_handler.setFormatter(formatter)
            console_handler.setLevel(level)
            self.logger.addHandler(console_handler)

        if self.config.file_path:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def _format_message(self, message: str, **kwargs: Any) -> str:
        """Append extra fields as key=value pairs."""
        if kwargs:
            field_str = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} | {field_str}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).
        config: Optional logging configuration.

    Returns:
        Configured StructuredLogger instance (cached by name).
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, config)
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Already-created loggers are reconfigured so that CLI flags such as
    ``--verbose`` take effect for module-level loggers too.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path for log output.
        console: Whether to log to console.
    """
    config = LogConfig(level=level, file_path=log_file, console=console)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _ConfigHolder.set_config(config)

    for structured in _loggers.values():
        structured.config = config
        structured._setup_logger()


class _ConfigHolder:
    """Holds default logging configuration."""

    _config: LogConfig = LogConfig()

    @classmethod
    def get_config(cls) -> LogConfig:
        """Get the default config."""
        return cls._config

    @classmethod
    def set_config(cls, config: LogConfig) -> None:
        """Set the default config."""
        cls._config = config


class CycleLogger:
    """
    Specialized logger for one background federation cycle.

    Tracks wall-clock duration between start() and finish().
    """

    def __init__(self, cycle: str) -> None:
        self.cycle = cycle
        self.logger = get_logger("catalogmesh.cycle")
        self._started: Optional[datetime] = None

    def start(self, **kwargs: Any) -> None:
        """Mark the start of the cycle."""
        self._started = datetime.now(timezone.utc)
        self.logger.info("Cycle started", cycle=self.cycle, **kwargs)

    @property
    def elapsed(self) -> float:
        """Seconds since start() (0.0 if never started)."""
        if self._started is None:
            return 0.0
        return (datetime.now(timezone.utc) - self._started).total_seconds()

    def finish(self, success: bool, error: Optional[str] = None, **counters: Any) -> None:
        """Log cycle completion with its outcome counters."""
        duration = f"{self.elapsed:.2f}"
        if success:
            self.logger.info(
                "Cycle completed", cycle=self.cycle, duration_sec=duration, **counters
            )
        else:
            self.logger.error(
                "Cycle failed", cycle=self.cycle, duration_sec=duration, error=error
            )
