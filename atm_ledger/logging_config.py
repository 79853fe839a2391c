"""
Structured Logging Configuration Module

JSON (or plain text) log lines for ledger operations. Structured extras
pass through a redaction step so a PIN can never reach a log sink.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import LedgerConfig, get_config
from .validation import mask_pin


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

STRUCTURED_FIELDS = ("user_id", "action", "resource")
PIN_FIELDS = frozenset({"pin", "old_pin", "new_pin", "confirm_pin"})


def redact(extra: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a structured extra with PIN values masked, nested dicts included"""
    redacted = {}
    for key, value in extra.items():
        if key.lower() in PIN_FIELDS:
            redacted[key] = mask_pin(value)
        elif isinstance(value, dict):
            redacted[key] = redact(value)
        else:
            redacted[key] = value
    return redacted


class JSONFormatter(logging.Formatter):
    """One JSON object per record; absent fields are left out"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        extra = getattr(record, 'extra', None)
        if extra:
            log_entry["extra"] = redact(extra)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", log_format: str = "json",
                  logger_name: str = "atm_ledger") -> logging.Logger:
    """
    Attach a single stream handler to the ledger logger

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" for structured output, "text" for plain lines
        logger_name: Name of the logger

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Calling twice must not double every line
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format.lower() == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def configure_logging(config: Optional[LedgerConfig] = None) -> logging.Logger:
    """Set up the ledger logger from LEDGER_LOG_LEVEL / LEDGER_LOG_FORMAT"""
    config = config or get_config()
    return setup_logging(config.log_level, config.log_format)


def get_logger(name: str = "atm_ledger") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log an action with structured data.

    Args:
        logger: Logger instance
        level: Log level (info, warning, error, etc.)
        message: Log message
        user_id: ID of the user performing the action
        action: Action being performed
        resource: Resource being acted upon, e.g. "account:ACC1001"
        extra: Additional structured data
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(
        logger.name, levelno, __name__, 0, message, (), None
    )

    if user_id:
        record.user_id = user_id
    if action:
        record.action = action
    if resource:
        record.resource = resource
    if extra:
        record.extra = extra

    logger.handle(record)
