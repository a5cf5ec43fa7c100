"""
Structured Logging
==================
JSON logging for the sign-out core, with structlog routed through stdlib.

Usage:
    from inductlite_core.logging import setup_logging, request_id_var

    setup_logging(service_name="inductlite-web")
    request_id_var.set(generate_request_id())

Never log: sign-out tokens, token hashes, phone numbers, secrets.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

import structlog

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
service_name_var: ContextVar[str] = ContextVar("service_name", default="unknown")


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON for structured logging.
    Compatible with ELK, Datadog, CloudWatch, etc.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": service_name_var.get(),
            "request_id": request_id_var.get() or None,
        }

        # structlog hands us the event dict as the record message
        if isinstance(record.msg, dict):
            log_data.update(record.msg)
        else:
            log_data["event"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


def add_request_context(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor that stamps the current request id."""
    request_id = request_id_var.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def pass_event_dict(logger, method_name: str, event_dict: Dict[str, Any]):
    """Final processor handing the event dict to JSONFormatter as the record message."""
    return (event_dict,), {}


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> logging.Logger:
    """
    Configure logging for a service embedding the sign-out core.

    Args:
        service_name: Name of the service (e.g., "inductlite-web")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to output JSON (for production)

    Returns:
        Configured root logger
    """
    service_name_var.set(service_name)
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        ))
    root_logger.addHandler(handler)

    processors = [
        structlog.contextvars.merge_contextvars,
        add_request_context,
        structlog.stdlib.add_log_level,
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(pass_event_dict)
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info("logging.configured", service=service_name)
    return root_logger


def get_logger(name: str):
    """Get a structlog logger with the given name."""
    return structlog.get_logger(name)
