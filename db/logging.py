from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(log_level: str, *, json_output: bool | None = None) -> None:
    """
    Configure structlog for the migrate command.

    Operators running it in a terminal get the console renderer; CI and deploy hooks (no TTY) get
    one JSON object per line.
    """
    if json_output is None:
        json_output = not sys.stdout.isatty()
    level = logging.getLevelName(log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()
