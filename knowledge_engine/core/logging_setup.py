"""structlog bootstrap shared by the CLI and any embedding application.

Records go to stderr so that command output on stdout stays machine-readable.
"""

import logging
import logging.config
import sys

import structlog
from structlog.dev import ConsoleRenderer

from knowledge_engine.core.config import settings

_CONFIGURED = False
_LOCAL_ENVIRONMENTS = ("", "local", "development", "dev")

# Chatty third-party loggers held at WARNING regardless of the requested level.
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def is_local_environment(environment: str | None = None) -> bool:
    env = settings.ENVIRONMENT if environment is None else environment
    return env.lower() in _LOCAL_ENVIRONMENTS


def configure_logging(log_level: str, *, environment: str | None = None) -> None:
    """Configure structured logging once per process.

    - Local/development: coloured console output
    - Anything else: one JSON object per line
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    # Dictionary entries and trivia regularly carry non-ASCII text.
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="backslashreplace")

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if is_local_environment(environment):
        renderer = ConsoleRenderer(colors=sys.stderr.isatty(), pad_event=40)
    else:
        renderer = structlog.processors.JSONRenderer()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                    "foreign_pre_chain": shared_processors,
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                    "stream": "ext://sys.stderr",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level.upper()},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        }
    )

    _CONFIGURED = True
