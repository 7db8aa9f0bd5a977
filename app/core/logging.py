"""Structured logging configuration using structlog.

Request-scoped fields (request id, caller IP, tool name) live in context
variables and are attached to loggers obtained through
``get_context_logger``. Credentials never reach a sink: keys that look like
secrets are redacted, and so are string values carrying a known token prefix.
"""

import logging
import re
import sys
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "storefront-factory"
REDACTED = "***REDACTED***"

SENSITIVE_KEYS = {
    "password",
    "token",
    "secret",
    "key",
    "authorization",
    "credential",
    "bearer",
}

# GitHub PATs / app tokens, Vercel tokens and raw Authorization values
_TOKEN_VALUE_RE = re.compile(r"\b(ghp_|gho_|ghs_|ghu_|github_pat_|Bearer\s+)\S+")

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_client_ip: ContextVar[str | None] = ContextVar("client_ip", default=None)
_tool: ContextVar[str | None] = ContextVar("tool", default=None)

_CONTEXT_FIELDS: dict[str, ContextVar[str | None]] = {
    "request_id": _request_id,
    "client_ip": _client_ip,
    "tool": _tool,
}


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag every event with the application name."""
    event_dict["app"] = APP_NAME
    return event_dict


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(sensitive in lowered for sensitive in SENSITIVE_KEYS)


def _censor_value(value: Any) -> Any:
    if isinstance(value, str):
        return _TOKEN_VALUE_RE.sub(REDACTED, value)
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(str(k)) else _censor_value(v) for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_censor_value(item) for item in value]
    return value


def censor_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Censor credentials in log events.

    Field names that look like credentials are replaced wholesale, at any
    depth of nested dicts and lists. Remaining string values are scrubbed of
    token-shaped substrings, so an upstream error message echoing a header
    does not leak it. The event message itself is left intact.

    Args:
        logger: Logger instance
        method_name: Method name being called
        event_dict: Event dictionary

    Returns:
        Updated event dictionary with censored data
    """
    for key in list(event_dict.keys()):
        if key == "event":
            continue
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _censor_value(event_dict[key])
    return event_dict


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON lines when True, the colored console renderer otherwise
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, str(log_level).upper(), logging.INFO),
    )

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        censor_sensitive_data,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(request_id: str | None = None, client_ip: str | None = None) -> None:
    """
    Bind request context for the current task.

    Called by the request id middleware so that every log line emitted
    while handling the request carries the correlation id.
    """
    if request_id:
        _request_id.set(request_id)
    if client_ip:
        _client_ip.set(client_ip)


def bind_tool_context(tool: str) -> None:
    """Attach the running tool's name to subsequent log lines of this request."""
    _tool.set(tool)


def clear_request_context() -> None:
    for var in _CONTEXT_FIELDS.values():
        var.set(None)


def get_request_id() -> str | None:
    return _request_id.get()


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def get_context_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get logger with the current request context bound.

    Example:
        ```python
        from app.core.logging import get_context_logger

        logger = get_context_logger(__name__)
        logger.info("Publishing commit")  # Includes request_id and tool
        ```
    """
    logger = get_logger(name)
    context = {field: var.get() for field, var in _CONTEXT_FIELDS.items() if var.get() is not None}
    if context:
        return cast(structlog.stdlib.BoundLogger, logger.bind(**context))
    return logger
