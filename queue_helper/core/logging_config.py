"""
Logging Configuration Module
============================
Structured JSON logging with broker context support.

This module provides:
- JSON formatted logging for production
- Text formatting for development
- Broker-aware logging with alias context
"""

import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pathlib import Path
from logging.handlers import RotatingFileHandler


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Produces JSON lines compatible with log aggregation systems
    like ELK, Splunk, or CloudWatch.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_broker_context: bool = True,
    ):
        """
        Initialize the JSON formatter.

        Args:
            include_timestamp: Include ISO8601 timestamp in output
            include_broker_context: Include alias/broker_type if present on the record
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_broker_context = include_broker_context

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            str: JSON formatted log line
        """
        log_data: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        if self.include_broker_context:
            if hasattr(record, "alias"):
                log_data["alias"] = record.alias
            if hasattr(record, "broker_type"):
                log_data["broker_type"] = record.broker_type

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Consumer callbacks may run outside the caller's thread
        log_data["thread"] = {
            "id": record.thread,
            "name": record.threadName,
        }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """
    Human-readable text formatter for development.

    Provides colorized output when running in a terminal.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",      # Reset
    }

    def __init__(self, use_colors: bool = True):
        """
        Initialize the text formatter.

        Args:
            use_colors: Use ANSI colors in output
        """
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            reset = self.COLORS["RESET"]
            level_str = f"{color}{level:8s}{reset}"
        else:
            level_str = f"{level:8s}"

        context_parts = []
        if hasattr(record, "alias"):
            context_parts.append(f"alias={record.alias}")
        if hasattr(record, "broker_type"):
            context_parts.append(f"broker={record.broker_type}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        message = record.getMessage()

        if hasattr(record, "extra_data") and record.extra_data:
            message += f" | {record.extra_data}"

        output = f"{timestamp} | {level_str} | {record.name}{context_str} | {message}"

        if record.exc_info:
            output += f"\n{self.formatException(record.exc_info)}"

        return output


class BrokerLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds broker context to all log messages.

    Automatically includes the alias and broker type in all log records.
    """

    def __init__(
        self,
        logger: logging.Logger,
        alias: str,
        broker_type: Optional[str] = None,
    ):
        """
        Initialize the broker logger.

        Args:
            logger: Base logger instance
            alias: Alias the broker is bound to
            broker_type: Broker family name (rabbitmq, kafka, memory)
        """
        super().__init__(logger, {})
        self.alias = alias
        self.broker_type = broker_type

    def process(
        self,
        msg: str,
        kwargs: Dict[str, Any],
    ) -> tuple:
        extra = kwargs.get("extra", {})
        extra["alias"] = self.alias
        if self.broker_type:
            extra["broker_type"] = self.broker_type
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    output: str = "stdout",
    file_path: Optional[str] = None,
    max_file_size: int = 10_000_000,
    backup_count: int = 5,
) -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or text)
        output: Output destination (stdout, file, both)
        file_path: Path to log file (required if output includes file)
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    if output in ("stdout", "both"):
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setFormatter(formatter)
        root_logger.addHandler(stdout_handler)

    if output in ("file", "both") and file_path:
        log_path = Path(file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=max_file_size,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Suppress noisy broker client loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    logging.getLogger("aiokafka").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance by name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger: Configured logger instance
    """
    return logging.getLogger(name)


def get_broker_logger(
    alias: str,
    broker_type: Optional[str] = None,
    name: Optional[str] = None,
) -> BrokerLogger:
    """
    Get a logger instance with broker context.

    Args:
        alias: Alias the broker is bound to
        broker_type: Broker family name
        name: Optional logger name (defaults to queue_helper.brokers)

    Returns:
        BrokerLogger: Logger with broker context
    """
    base_logger = logging.getLogger(name or "queue_helper.brokers")
    return BrokerLogger(base_logger, alias, broker_type)
