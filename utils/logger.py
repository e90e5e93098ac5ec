"""Structured logging utilities for FoldLine.

Provides JSON-formatted logging for log files and human-readable logging
for the console. Every component logs through a category adapter so that
scheduling, tuning, leakage checks and backtests can be filtered apart.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

# Log categories
CATEGORY_DATA = "data"
CATEGORY_TRAINING = "training"
CATEGORY_VALIDATION = "validation"
CATEGORY_TUNING = "tuning"
CATEGORY_BACKTEST = "backtest"
CATEGORY_SYSTEM = "system"

DEFAULT_LOGGER_NAME = "foldline"


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per record with timestamp, level, category,
    message, and any structured context passed as ``extra_data``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "category": getattr(record, "category", CATEGORY_SYSTEM),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Console formatter with level colors and a fixed-width category column."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.COLORS["RESET"]
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        category = getattr(record, "category", CATEGORY_SYSTEM)

        msg = f"{color}[{timestamp}] {record.levelname:8s}{reset} [{category:10s}] {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            msg += f"\n  Data: {record.extra_data}"

        return msg


class CategoryAdapter(logging.LoggerAdapter):
    """
    Logger adapter that tags records with a component category.

    Structured context can be passed with ``extra_data={...}``; it is moved
    into the record so both formatters can render it.
    """

    def __init__(self, logger: logging.Logger, category: str):
        super().__init__(logger, {})
        self.category = category

    def process(self, msg: str, kwargs: Dict) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra["category"] = self.category
        if "extra_data" in kwargs:
            extra["extra_data"] = kwargs.pop("extra_data")
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    json_format: bool = False,
) -> logging.Logger:
    """
    Setup and configure the project logger.

    Args:
        name: Logger name
        level: Logging level
        log_dir: Directory for a dated JSON log file (stdout only if None)
        json_format: Use JSON on the console instead of the readable format

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = JSONFormatter() if json_format else HumanReadableFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"{name}_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        # File logs are always JSON
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_logger(
    category: str,
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[int] = None,
) -> CategoryAdapter:
    """
    Get logger with specific category.

    Args:
        category: Log category (data, training, validation, ...)
        name: Base logger name
        level: Optional logging level override

    Returns:
        Logger adapter with category
    """
    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level)

    return CategoryAdapter(logger, category)


def get_data_logger(name: str = DEFAULT_LOGGER_NAME) -> CategoryAdapter:
    """Get logger for panel loading and alignment."""
    return get_logger(CATEGORY_DATA, name)


def get_training_logger(name: str = DEFAULT_LOGGER_NAME) -> CategoryAdapter:
    """Get logger for the rolling fit/predict engine."""
    return get_logger(CATEGORY_TRAINING, name)


def get_validation_logger(name: str = DEFAULT_LOGGER_NAME) -> CategoryAdapter:
    """Get logger for windowing, folds, leakage checks and stitching."""
    return get_logger(CATEGORY_VALIDATION, name)


def get_tuning_logger(name: str = DEFAULT_LOGGER_NAME) -> CategoryAdapter:
    """Get logger for hyper-parameter tuning."""
    return get_logger(CATEGORY_TUNING, name)


def get_backtest_logger(name: str = DEFAULT_LOGGER_NAME) -> CategoryAdapter:
    """Get logger for backtesting."""
    return get_logger(CATEGORY_BACKTEST, name)
