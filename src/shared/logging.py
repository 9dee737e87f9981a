"""Structured logging for the storefront.

Entry points call ``configure_logging`` once: the FastAPI app on startup and
``manage.py`` before dispatching a command. Importing this module configures
nothing.

Placement binds ``user_id`` and ``placement_key`` with ``add_context`` so that
every line the saga and the services beneath it emit can be traced back to one
checkout attempt.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

from shared.config import current_env

_LEVELS = {"production": "INFO", "development": "DEBUG"}
_JSON_ENVS = {"production"}


def log_level(env: str) -> str:
    """``LOG_LEVEL`` wins; otherwise test-like environments only show warnings."""
    return os.getenv("LOG_LEVEL") or _LEVELS.get(env, "WARNING")


def _processors(env: str) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if env in _JSON_ENVS:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(log_dir: str | Path | None = None, env: str | None = None) -> None:
    """Route structlog through stdlib logging.

    Logs go to stdout. When ``log_dir`` is given it is created and a rotating
    ``storefront.log`` is written there too.
    """
    env = env or current_env()
    level = log_level(env)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=directory / "storefront.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )
    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    structlog.configure(
        processors=_processors(env),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_context(**kwargs: Any) -> None:
    """Bind key/values to every later log line in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context(*keys: str) -> None:
    """Unbind ``keys``; everything when none are given."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()
