"""Structured logging configuration."""

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from pythonjsonlogger import jsonlogger

from stockview.config import settings

# Third-party loggers that are too chatty at DEBUG/INFO
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "apscheduler.executors.default": logging.WARNING,
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class StockJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per line, with UTC timestamp and call site."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["where"] = f"{record.module}.{record.funcName}:{record.lineno}"


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = RotatingFileHandler(
        path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(base_dir: str | Path | None = None):
    """Install console and JSON file handlers on the root logger.

    Args:
        base_dir: Directory to create ``logs/`` in. Defaults to the working
                  directory.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logs_dir = Path(base_dir or Path.cwd()) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s")
    )
    root_logger.addHandler(console)

    json_formatter = StockJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    root_logger.addHandler(_rotating_handler(logs_dir / "app.log", logging.DEBUG, json_formatter))
    root_logger.addHandler(_rotating_handler(logs_dir / "error.log", logging.ERROR, json_formatter))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    root_logger.debug(f"Logging to {logs_dir} at level {logging.getLevelName(level)}")
    return root_logger


class ContextAdapter(logging.LoggerAdapter):
    """Adds fixed context (run id, trigger, ...) to every record's extra."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, **context) -> ContextAdapter:
    """
    Get a logger that tags each record with ``context``.

    Example:
        log = get_logger(__name__, run_id=run_id, trigger="manual")
        log.info("Stock refresh started")
    """
    return ContextAdapter(logging.getLogger(name), context)
