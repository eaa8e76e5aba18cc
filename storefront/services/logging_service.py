"""structlog setup shared by the auth API and the web client.

Both processes log one event per line. Credentials never reach the output:
values under credential-like keys are masked at any nesting depth (request
headers, form payloads), and bearer tokens embedded in free text are cut
down to their scheme.
"""

import logging
import re
import sys
from typing import Any, Dict, Optional

import structlog

REDACTED = "REDACTED"

# Substrings of key names whose values are credentials
SENSITIVE_KEY_PARTS = ("authorization", "secret", "password", "token", "cookie")

_BEARER = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9\-._~+/]+=*")


def is_sensitive_key(key: Any) -> bool:
    return isinstance(key, str) and any(part in key.lower() for part in SENSITIVE_KEY_PARTS)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if is_sensitive_key(k) else _scrub(v) for k, v in value.items()
        }
    if isinstance(value, list):
        return [_scrub(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_scrub(v) for v in value)
    if isinstance(value, str):
        return _BEARER.sub(rf"\1 {REDACTED}", value)
    return value


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Mask credentials anywhere in the event.

    The ``event`` name itself is left alone so names such as
    ``password_reset_requested`` stay readable.
    """
    for key, value in event_dict.items():
        if key == "event":
            continue
        event_dict[key] = REDACTED if is_sensitive_key(key) else _scrub(value)
    return event_dict


def add_service_name(service: str):
    """Processor stamping every event with the emitting process."""

    def processor(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def configure_logging(
    log_level: str = "INFO",
    *,
    json_logs: bool = True,
    service: Optional[str] = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        json_logs: One JSON object per line; False renders for a terminal
        service: Value of the ``service`` field on every event
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    # uvicorn and asyncpg log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if service:
        processors.append(add_service_name(service))
    processors.append(redact_sensitive)

    if json_logs:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    return logger.bind(component=component) if component else logger
