"""
Structured logging for the referral API.

JSON lines in production, a readable format in development. Every record
emitted while a request is in flight carries that request's id, so a single
referral submission can be followed through the service and storage logs.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

NOISY_LOGGERS = ("urllib3", "boto3", "botocore", "s3transfer", "sqlalchemy.engine", "multipart")


def new_request_id(incoming: Optional[str] = None) -> str:
    """Adopt a caller-supplied request id if it looks sane, else mint one."""
    if incoming and len(incoming) <= 64 and incoming.replace("-", "").isalnum():
        return incoming
    return uuid.uuid4().hex


def bind_request_id(request_id: Optional[str]):
    return _request_id.set(request_id)


def reset_request_id(token) -> None:
    _request_id.reset(token)


def current_request_id() -> Optional[str]:
    return _request_id.get()


class RequestContextFilter(logging.Filter):
    """Stamp the in-flight request id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = current_request_id() or "-"
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with the fields log search relies on.
    """

    def __init__(self, *args, service: str = "referral-tracker", **kwargs):
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = self.service
        log_record['request_id'] = getattr(record, 'request_id', None) or current_request_id()

        # Source location only matters when something went wrong
        if record.levelno >= logging.WARNING:
            log_record['module'] = record.module
            log_record['line'] = record.lineno


def setup_logging(log_level: str = "INFO", json_logs: bool = True, service: str = "referral-tracker") -> None:
    """
    Configure root logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON lines (production) or plain text (development)
        service: Value of the ``service`` field in JSON output
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(RequestContextFilter())

    if json_logs:
        formatter = CustomJsonFormatter('%(message)s', service=service)
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler.setFormatter(formatter)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
