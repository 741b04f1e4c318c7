"""
Structured logging via structlog.

Module loggers stay plain ``logging.getLogger(__name__)``; this routes them
through structlog so every line carries the active account and chain.
Logs go to stderr because the CLI owns stdout.
"""

import logging
import sys
from typing import List, Optional

import structlog

from .config import settings


def _add_chain_id(logger, method_name, event_dict):
    event_dict.setdefault("chain_id", settings.chain_id)
    return event_dict


def _renderer(log_format: str, level: int):
    if log_format == "auto":
        log_format = "console" if level <= logging.DEBUG else "json"
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Override log level (default: settings.log_level)
        log_format: "json", "console" or "auto" (default: settings.log_format)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    renderer = _renderer(log_format or settings.log_format, level)

    processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_chain_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if isinstance(renderer, structlog.processors.JSONRenderer):
        processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Request-level chatter from the RPC and gateway clients
    for name in ("httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_account(account: str) -> None:
    """Attach the active wallet account to every subsequent log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(account=account.lower())
