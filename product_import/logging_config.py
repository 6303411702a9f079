"""Logging configuration for import runs."""
import logging
import logging.handlers
import os
from datetime import datetime
from typing import Dict, List, Optional

from pythonjsonlogger import jsonlogger

PACKAGE_LOGGER = "product_import"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter for structured logging."""

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        log_record['timestamp'] = datetime.utcnow().isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno


class BatchLogHandler(logging.Handler):
    """Keeps the log entries of one import batch in memory."""

    def __init__(self, batch_id: str, max_entries: int = 1000):
        super().__init__()
        self.batch_id = batch_id
        self.max_entries = max_entries
        self.logs: List[Dict[str, object]] = []

    def emit(self, record):
        """Emit a log record."""
        try:
            self.logs.append({
                'timestamp': datetime.utcnow().isoformat(),
                'batch_id': self.batch_id,
                'level': record.levelname,
                'message': self.format(record),
                'module': record.module,
                'function': record.funcName,
                'line': record.lineno
            })
            if len(self.logs) > self.max_entries:
                del self.logs[0]
        except Exception:
            self.handleError(record)

    def get_logs(self, level: Optional[str] = None) -> List[Dict[str, object]]:
        """Return captured entries, optionally only those of one level."""
        if level is None:
            return list(self.logs)
        return [entry for entry in self.logs if entry['level'] == level]


def setup_import_logging(log_path: str, level: str = "INFO") -> logging.Logger:
    """Setup logging for the importer package."""
    os.makedirs(log_path, exist_ok=True)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers = []

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    # File handler with rotation
    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_path, 'import.log'),
        maxBytes=10485760,  # 10MB
        backupCount=10
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    # JSON file handler for structured logs
    json_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_path, 'import.json.log'),
        maxBytes=10485760,  # 10MB
        backupCount=10
    )
    json_handler.setLevel(level)
    json_handler.setFormatter(CustomJsonFormatter())

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    logger.addHandler(json_handler)

    return logger


def attach_batch_handler(batch_id: str) -> BatchLogHandler:
    """Start capturing the package's log records for one batch."""
    handler = BatchLogHandler(batch_id)
    handler.setFormatter(logging.Formatter('%(message)s'))
    logging.getLogger(PACKAGE_LOGGER).addHandler(handler)
    return handler


def detach_batch_handler(handler: BatchLogHandler) -> None:
    logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
