"""
Structured logging configuration for MarketScout.

Every event carries the correlation id of the invocation that produced it,
plus any context bound through ``structlog.contextvars`` (the orchestrator
binds ``job_id``). Credentials are redacted before rendering.
"""

import logging
import re
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

# Context-local so worker threads started from a copied context inherit it
_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_BEARER_RE = re.compile(r"(Bearer\s+)[a-zA-Z0-9_.-]{5,}")
_SECRET_RE = re.compile(
    r"(apiKey|api_key|key|token|password|secret)(\s*[:=]\s*)[\"']?[a-zA-Z0-9_.-]{5,}[\"']?",
    re.IGNORECASE,
)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set (or generate) the correlation id for the current context."""
    value = correlation_id or uuid.uuid4().hex[:8]
    _correlation_id.set(value)
    return value


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def add_correlation_id(logger, method_name, event_dict):
    correlation_id = _correlation_id.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def mask_secret(text: str) -> str:
    """Redact bearer tokens and key/secret assignments in a string."""
    text = _BEARER_RE.sub(r"\1sk-***REDACTED***", text)
    return _SECRET_RE.sub(r'\1\2"***REDACTED***"', text)


def mask_secrets(logger, method_name, event_dict):
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = mask_secret(value)
    return event_dict


def setup_logging(debug: bool = False, rich_output: bool = True) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        debug: Log at DEBUG instead of INFO
        rich_output: Colored console rendering; JSON lines otherwise
    """
    level = logging.DEBUG if debug else logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id,
        mask_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
    ]

    if rich_output:
        processors += [
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(
                colors=True, exception_formatter=structlog.dev.rich_traceback
            ),
        ]
        # Library loggers (httpx) go through rich as well
        handler = RichHandler(
            console=Console(stderr=True, force_terminal=True), show_path=False
        )
        logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler])
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
        logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    # stdout is reserved for command output such as ``research --json``
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
