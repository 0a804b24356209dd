"""structlog setup shared by the API layer and the scraping internals.

Provider, browser and pipeline modules log with ``logging.getLogger(__name__)``
and %-style messages prefixed by their area (``"dlsite: ..."``,
``"browser: ..."``).  The API layer logs key/value events through
``structlog.get_logger``.  :func:`configure_logging` routes both through one
:class:`structlog.stdlib.ProcessorFormatter` on the root handler, so every
line on stdout has the same shape.

While a request is served, :data:`request_id_var` holds its ID (set by the
request-logging middleware in ``api/main.py``) and every record emitted on
that task carries it, including records from provider code.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

#: Key fragments (lower case) whose values never reach the log output.
_SECRET_MARKERS = ("token", "secret", "password", "authorization", "cookie", "bearer")

#: Third-party loggers held at WARNING outside DEBUG.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncio")


def _is_secret(key: object) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in _SECRET_MARKERS)


def _redact(values: Mapping[Any, Any]) -> dict[Any, Any]:
    """Copy ``values`` with secret keys masked, descending into nested mappings."""
    masked: dict[Any, Any] = {}
    for key, value in values.items():
        if _is_secret(key):
            masked[key] = REDACTED
        elif isinstance(value, Mapping):
            masked[key] = _redact(value)
        else:
            masked[key] = value
    return masked


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    # Copies nested mappings so a logged headers dict is not altered for its owner.
    return _redact(event_dict)


def add_request_id(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_var.get()
    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _renderer(debug: bool) -> Processor:
    if debug:
        return structlog.dev.ConsoleRenderer(colors=True)
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def configure_logging(log_level: str = "INFO") -> None:
    """Install the root handler and configure structlog.

    ``DEBUG`` renders coloured console lines; any other level renders one
    JSON object per record with ``timestamp``, ``level``, ``logger`` and
    ``event``.  Unknown level names fall back to INFO.  Calling this again
    replaces the previous root handler.
    """
    name = log_level.upper()
    debug = name == "DEBUG"
    pre_chain = _pre_chain()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(debug)],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, name, logging.INFO))

    quiet_level = logging.NOTSET if debug else logging.WARNING
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
