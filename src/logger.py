r"""
Centralized logging configuration for Order Tracker.

This module provides the logging system shared by every module:
- Structured JSON logging for easy parsing and analysis
- Automatic file rotation (prevents log files from growing indefinitely)
- Configurable log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Automatic cleanup of old logs (retention policy)
- Both file and console output
- Context-aware logging (operator_id, order_id)

For a kitchen or warehouse floor, the log is the audit trail of who started
and finished which order, and the only way to troubleshoot a failed scan after
the fact.

Log file location: <DataPath>/Logs/order_tracker/
Log file format: YYYY-MM-DD.log

Example log entry (JSON format):
    {"timestamp": "2025-11-05T14:30:45.123", "level": "INFO", "tool": "order_tracker",
     "operator_id": "12345678", "order_id": "PED-1042", "module": "order_tracker",
     "function": "handle_scan", "line": 212, "message": "Order PED-1042 completed"}
"""

import logging
import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any
import configparser
from contextvars import ContextVar


# Context variables for structured logging
_operator_id: ContextVar[Optional[str]] = ContextVar('operator_id', default=None)
_order_id: ContextVar[Optional[str]] = ContextVar('order_id', default=None)


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with fields:
    - timestamp: ISO 8601 format with milliseconds
    - level: Log level
    - tool: Always "order_tracker"
    - operator_id: Current operator context (if set)
    - order_id: Current order context (if set)
    - module, function, line: Origin of the record
    - message: Log message
    - exc_info: Exception information (if present)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'tool': 'order_tracker',
            'operator_id': _operator_id.get(),
            'order_id': _order_id.get(),
            'module': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['exc_info'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_data['extra'] = record.extra_data

        return json.dumps(log_data, ensure_ascii=False)


class AppLogger:
    """
    Centralized application logger with file rotation and cleanup.

    Logging is configured once, on the first get_logger() call, regardless of
    how many modules import the logger.

    The logging system is configured from config.ini with these settings:
    - [Logging] LogLevel: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - [Logging] MaxLogSizeMB: Maximum size per log file before rotation
    - [Logging] LogRetentionDays: How many days of logs to keep
    - [Storage] DataPath: Base directory; logs go to DataPath/Logs/order_tracker

    Attributes:
        _initialized: Whether logging has been configured (class-level)
        _config_path: config.ini the settings are read from
        _handlers: Handlers installed on the root logger by the last setup
    """

    _initialized: bool = False
    _config_path: Path = Path('config.ini')
    _handlers: list = []

    @classmethod
    def get_logger(cls, name: str = 'OrderTracker') -> logging.Logger:
        """
        Get or create application logger with lazy initialization.

        Usage in modules:
            from logger import get_logger
            logger = get_logger(__name__)
            logger.info("Starting operation")

        Args:
            name: Logger name, typically the module name (__name__)

        Returns:
            Configured logger instance for the specified name
        """
        if not cls._initialized:
            cls._setup_logging()
            cls._initialized = True

        return logging.getLogger(name)

    @classmethod
    def _setup_logging(cls):
        """
        Setup logging configuration from config.ini.

        Configures the log directory, level, a rotating JSON file handler and
        a human-readable console handler on the root logger, then removes logs
        older than the retention period.
        """
        config = cls._load_config()

        data_path = config.get('Storage', 'DataPath',
                               fallback=str(Path.home() / ".order_tracker"))
        log_dir = Path(data_path) / "Logs" / "order_tracker"

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # Fallback to the home directory if the configured path is not writable
            log_dir = Path(os.path.expanduser("~")) / ".order_tracker" / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            print(f"Warning: Could not use configured logs directory. Using local: {log_dir}. Error: {e}")

        log_file = log_dir / f"{datetime.now():%Y-%m-%d}.log"

        log_level_str = config.get('Logging', 'LogLevel', fallback='INFO')
        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        max_log_size = config.getint('Logging', 'MaxLogSizeMB', fallback=10) * 1024 * 1024

        json_formatter = StructuredJSONFormatter()

        # Format: timestamp | module | level | function:line | message
        console_formatter = logging.Formatter(
            fmt='%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_log_size,
            backupCount=30,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(json_formatter)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(console_formatter)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)
        cls._handlers = [file_handler, console_handler]

        retention_days = config.getint('Logging', 'LogRetentionDays', fallback=30)
        cls._cleanup_old_logs(log_dir, retention_days)

        logger = logging.getLogger('OrderTracker')
        logger.info("=" * 80)
        logger.info("Order Tracker Started")
        logger.info(f"Log Level: {log_level_str}")
        logger.info(f"Log File: {log_file}")
        logger.info("=" * 80)

    @classmethod
    def configure(cls, config_path) -> None:
        """
        Read logging settings from another config file.

        Modules create their loggers at import time, so logging may already be
        set up from ./config.ini; in that case the handlers are replaced.

        Args:
            config_path: Path to the config.ini to use
        """
        cls._config_path = Path(config_path)

        if not cls._initialized:
            return

        root_logger = logging.getLogger()
        for handler in cls._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        cls._handlers = []

        cls._setup_logging()

    @classmethod
    def _load_config(cls) -> configparser.ConfigParser:
        """
        Load configuration from the configured config.ini (./config.ini by default).

        Returns:
            ConfigParser object; empty (all fallbacks apply) if the file is missing
        """
        config = configparser.ConfigParser()

        if cls._config_path.exists():
            config.read(cls._config_path, encoding='utf-8')

        return config

    @staticmethod
    def _cleanup_old_logs(log_dir: Path, retention_days: int):
        """
        Delete log files older than the retention period.

        Args:
            log_dir: Directory containing log files
            retention_days: Number of days to keep logs; 0 or negative keeps all
        """
        if retention_days <= 0:
            return

        cutoff_date = datetime.now() - timedelta(days=retention_days)

        try:
            for log_file in log_dir.glob("*.log*"):
                file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)

                if file_mtime < cutoff_date:
                    log_file.unlink()
                    logging.getLogger('OrderTracker').debug(f"Deleted old log: {log_file.name}")

        except OSError as e:
            # Non-fatal: file in use or permission issues
            logging.getLogger('OrderTracker').warning(f"Failed to cleanup old logs: {e}")


def get_logger(name: str = 'OrderTracker') -> logging.Logger:
    """
    Get application logger.

    Example:
        >>> from logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Starting process")
    """
    return AppLogger.get_logger(name)


def set_operator_context(operator_id: Optional[str]) -> None:
    """
    Set current operator ID for structured logging context.

    Args:
        operator_id: Operator identifier (national ID) or None to clear
    """
    _operator_id.set(operator_id)


def set_order_context(order_id: Optional[str]) -> None:
    """
    Set current order ID for structured logging context.

    Args:
        order_id: Order identifier or None to clear
    """
    _order_id.set(order_id)


def clear_logging_context() -> None:
    """Clear all logging context (operator_id, order_id)."""
    _operator_id.set(None)
    _order_id.set(None)


def configure_logging(config_path) -> None:
    """Point the logging setup at a specific config.ini (see AppLogger.configure)."""
    AppLogger.configure(config_path)
