"""
Module: logger.py
Description: Structured logging configuration for the SMS dispatch service.

Configures structlog for JSON output read by CloudWatch Logs. The level
threshold comes from settings.log_level, and a request id bound with
bind_request_context() is attached to every line logged while one SMS
request is being processed.

Key Components:
- get_logger(): Module logger factory
- bind_request_context() / clear_request_context(): Per-request log context

Dependencies: structlog, logging, datetime
"""

import logging
from datetime import datetime, timezone

import structlog

from sms_dispatch.config.settings import settings


def _add_timestamp(logger, method_name, event_dict):
    """
    Add ISO 8601 UTC timestamp to log entries.

    Args:
        logger: Logger instance
        method_name: Log method name (info, error, etc.)
        event_dict: Current log event dictionary

    Returns:
        Updated event dictionary with timestamp
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return event_dict


def _add_log_level(logger, method_name, event_dict):
    event_dict["level"] = method_name.upper()
    return event_dict


structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        _add_timestamp,
        _add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.WriteLoggerFactory(),
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level)
    ),
    cache_logger_on_first_use=True,
)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("SMS sent", request_id="smsreq_123", message_id="m-1")
        {"request_id": "smsreq_123", "message_id": "m-1", "event": "SMS sent", "timestamp": "...", "level": "INFO"}
    """
    return structlog.get_logger(name)


def bind_request_context(**values) -> None:
    """Attach key/value pairs (e.g. request_id) to subsequent log lines."""
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
