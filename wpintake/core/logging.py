"""Structured logging — structlog rendering through stdlib handlers.

Environment:
    WPINTAKE_LOG_LEVEL   log level (default: INFO)
    WPINTAKE_LOG_FORMAT  console | json (default: console)

Logs are written to stderr; ``wpintake analyze`` and friends print their
JSON results on stdout and must stay pipeable.
"""

from __future__ import annotations

import logging
import logging.config
import os
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Chatty third-party loggers and the level they are pinned to.
_QUIET_LOGGERS = {
    "uvicorn.access": "WARNING",
    "uvicorn.error": "INFO",
    "sqlalchemy.engine": "WARNING",
    "asyncpg": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
}


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _stdlib_config(level: str, pre_chain: list, renderer: structlog.types.Processor) -> dict:
    loggers = {name: {"level": lvl} for name, lvl in _QUIET_LOGGERS.items()}
    loggers["wpintake"] = {"level": level}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": pre_chain,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "structlog",
            },
        },
        "root": {"handlers": ["stderr"], "level": level},
        "loggers": loggers,
    }


def setup_logging(level: str | None = None) -> None:
    """Configure structlog and stdlib logging.

    An explicit *level* (the CLI's ``--verbose``) wins over
    ``WPINTAKE_LOG_LEVEL``.
    """
    log_level = (level or os.environ.get("WPINTAKE_LOG_LEVEL", "INFO")).upper()
    json_output = os.environ.get("WPINTAKE_LOG_FORMAT", "console").lower() == "json"

    pre_chain = _pre_chain()
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.config.dictConfig(_stdlib_config(log_level, pre_chain, renderer))


@contextmanager
def job_log_context(job_id: str, action: str) -> Iterator[None]:
    """Bind ``job_id`` / ``action`` to every log line emitted inside the block.

    Engine code run by a job (including ``asyncio.to_thread`` work, which
    copies the context) logs with the job it belongs to.
    """
    tokens = structlog.contextvars.bind_contextvars(job_id=job_id, action=action)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
